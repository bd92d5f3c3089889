import enum
import platform
import struct
import sys
import sysconfig
from dataclasses import dataclass

from .cli_logger import logger
from .errors import ConfigurationError

MOBILE_OSES = ("ios", "android")

HOST_OS = {
    "linux": "linux",
    "darwin": "macos",
    "win32": "windows",
    "cygwin": "windows",
    "android": "android",
    "ios": "ios",
}

ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv7l": "armv7",
    "i386": "i686",
    "i586": "i686",
    "x86": "i686",
}

# Canonical OpenBLAS TARGET names, matched against the target triple prefix in order.
ARCH_TARGETS = (
    (("aarch64",), "ARMV8"),
    (("armv7", "thumbv7", "arm-"), "ARMV7"),
    (("x86_64",), "x86_64"),
    (("i686",), "x86"),
)

TARGET_POINTER_WIDTHS = {
    "ARMV8": 64,
    "ARMV7": 32,
    "x86_64": 64,
    "x86": 32,
}

# (triple fragment, (os, env)), first match wins.
TRIPLE_PLATFORMS = (
    ("-apple-ios", ("ios", "")),
    ("-apple-darwin", ("macos", "")),
    ("-linux-android", ("android", "")),
    ("-windows-msvc", ("windows", "msvc")),
    ("-windows-gnu", ("windows", "gnu")),
    ("-linux-gnu", ("linux", "gnu")),
    ("-linux-musl", ("linux", "musl")),
)

# -arch value handed to the iOS SDK clang for each ARM target.
APPLE_ARCH_FLAGS = {
    "ARMV8": "arm64",
    "ARMV7": "armv7",
}

IOS_SDK_COMMAND = ["xcrun", "--sdk", "iphoneos", "--show-sdk-path"]


class Platform(enum.Enum):
    WINDOWS_GNU = "windows-gnu"
    WINDOWS_MSVC = "windows-msvc"
    MACOS = "macos"
    MOBILE = "mobile"


@dataclass(frozen=True)
class BuildTarget:
    os: str
    env: str
    arch: str
    pointer_width: int
    triple: str

    @property
    def is_msvc(self):
        return self.env == "msvc"


@dataclass(frozen=True)
class BuildParameters:
    """Everything the target contributes to the `make` invocation."""

    toolchain_target_name: str
    tree_key: str
    hostcc: str | None = None
    cc: str | None = None
    cflags: str | None = None
    no_fortran: bool = False
    extra_args: tuple = ()
    num_jobs: int | None = None
    compiler_overrides: tuple = ()


def default_triple(os_name, env, arch):
    if os_name == "linux":
        return f"{arch}-unknown-linux-{env}" if env else f"{arch}-unknown-linux"
    if os_name == "macos":
        return f"{arch}-apple-darwin"
    if os_name == "ios":
        return f"{arch}-apple-ios"
    if os_name == "android":
        return f"{arch}-linux-android"
    if os_name == "windows":
        return f"{arch}-pc-windows-{env}"
    return f"{arch}-unknown-{os_name}"


def normalize_arch(machine):
    machine = machine.strip().lower()
    return ARCH_ALIASES.get(machine, machine)


def host_target():
    """Describe the interpreter's own platform, used when no target is configured."""
    os_name = HOST_OS.get(sys.platform, sys.platform.rstrip("0123456789"))
    if os_name == "windows":
        env = "gnu" if sysconfig.get_platform().startswith("mingw") or sys.platform == "cygwin" else "msvc"
    elif os_name == "linux":
        env = "gnu"
    else:
        env = ""
    arch = normalize_arch(platform.machine())
    return BuildTarget(
        os=os_name,
        env=env,
        arch=arch,
        pointer_width=struct.calcsize("P") * 8,
        triple=default_triple(os_name, env, arch),
    )


def classify_platform(target):
    """Map a target onto the OS family whose system-discovery strategy applies."""
    if target.os == "windows":
        if target.env == "gnu":
            return Platform.WINDOWS_GNU
        if target.env == "msvc":
            return Platform.WINDOWS_MSVC
        raise ConfigurationError(f"Unsupported ABI for Windows: {target.env or '<none>'}")
    if target.os == "macos":
        return Platform.MACOS
    if target.os in MOBILE_OSES:
        return Platform.MOBILE
    raise ConfigurationError(f"platform {target.os} not supported yet.")


def _match_arch_target(triple):
    for prefixes, name in ARCH_TARGETS:
        if triple.startswith(prefixes):
            return name
    return None


def canonical_target_name(triple):
    name = _match_arch_target(triple)
    if name is None:
        raise ConfigurationError(f"target {triple} is not supported yet.")
    return name


def pointer_width_of(triple):
    """Pointer width implied by a triple or architecture prefix, or None."""
    return TARGET_POINTER_WIDTHS.get(_match_arch_target(triple))


def platform_of(triple):
    """Return the (os, env) pair a triple names, or None when it is not recognised."""
    triple = triple.lower()
    for fragment, platform_env in TRIPLE_PLATFORMS:
        if fragment in triple:
            return platform_env
    return None


def resolve_ios_sdkroot(overrides, runner):
    if overrides.ios_sdkroot:
        return overrides.ios_sdkroot
    logger.info("  - Looking up the iphoneos SDK root with xcrun...")
    return runner.output_text(IOS_SDK_COMMAND).strip()


def resolve_build_parameters(target, overrides, runner):
    extra_args = tuple(overrides.args.split()) if overrides.args else ()
    compiler_overrides = tuple(
        (role, value)
        for role, value in (("CC", overrides.cc), ("FC", overrides.fc), ("HOSTCC", overrides.hostcc))
        if value
    )
    common = dict(extra_args=extra_args, num_jobs=overrides.num_jobs, compiler_overrides=compiler_overrides)

    if overrides.target:
        logger.info(f"  - Using OpenBLAS target {overrides.target} from OPENBLAS_TARGET")
        return BuildParameters(toolchain_target_name=overrides.target, tree_key=overrides.target, **common)

    name = canonical_target_name(target.triple)
    logger.info(f"  - Classified {target.triple} as OpenBLAS target {name}")
    if name not in APPLE_ARCH_FLAGS:
        return BuildParameters(toolchain_target_name=name, tree_key=target.triple, **common)

    cflags = None
    no_fortran = False
    if target.os == "ios":
        # The iOS SDK toolchain has no Fortran compiler.
        sdkroot = resolve_ios_sdkroot(overrides, runner)
        cflags = f"-isysroot {sdkroot} -arch {APPLE_ARCH_FLAGS[name]}"
        no_fortran = True
    return BuildParameters(
        toolchain_target_name=name,
        tree_key=target.triple,
        hostcc="clang",
        cc="clang",
        cflags=cflags,
        no_fortran=no_fortran,
        **common,
    )
