import os
import shutil

from . import LIBRARY_NAME
from .cli_logger import logger
from .errors import ConfigurationError
from .target import Platform, classify_platform

MINGW_PREFIX = "/mingw64"
HOMEBREW_OPENBLAS_LIB = "/usr/local/opt/openblas/lib"
PREBUILT_PATH_VARIABLE = "OPENBLAS_PREBUILD_PATH"

VCPKG_ARCHS = {
    "x86_64": "x64",
    "i686": "x86",
    "aarch64": "arm64",
    "armv7": "arm",
    "arm": "arm",
}


def windows_gnu_system(environment, runner):
    """
    Add path where pacman (on msys2) installs OpenBLAS.

    `pacman -S mingw-w64-x86_64-openblas` puts libopenblas.dll into
    /mingw64/bin and libopenblas.a into /mingw64/lib. The linker wants those
    in Windows form (msys2 `/` is `C:\\msys64\\` by default), which `cygpath -w`
    gives us.
    """
    directory = f"{MINGW_PREFIX}/lib" if environment.features.static else f"{MINGW_PREFIX}/bin"
    lib_path = runner.output_text(["cygpath", "-w", directory]).strip()
    if not lib_path:
        raise ConfigurationError(f"cygpath returned an empty path for {directory}")
    return [lib_path]


def vcpkg_triplet(target, variables):
    """Pick the vcpkg triplet the same way the vcpkg cargo integration does."""
    arch = VCPKG_ARCHS.get(target.arch)
    if arch is None:
        raise ConfigurationError(f"vcpkg has no triplet for architecture {target.arch}")
    if "crt-static" in variables.get("CARGO_CFG_TARGET_FEATURE", "").split(","):
        return f"{arch}-windows-static"
    if variables.get("VCPKGRS_DYNAMIC"):
        return f"{arch}-windows"
    return f"{arch}-windows-static-md"


def vcpkg_root(variables):
    root = variables.get("VCPKG_ROOT")
    if root:
        return root
    executable = shutil.which("vcpkg", path=variables.get("PATH"))
    if executable:
        return os.path.dirname(os.path.abspath(executable))
    raise ConfigurationError("vcpkg not found: set VCPKG_ROOT or put vcpkg on PATH")


def windows_msvc_system(environment, runner):
    """Use vcpkg for the MSVC `system` feature."""
    target = environment.target
    if not target.is_msvc:
        raise ConfigurationError(f"vcpkg discovery requires the MSVC ABI, got {target.env or '<none>'}")

    variables = dict(environment.variables)
    if environment.features.static:
        features = [f for f in variables.get("CARGO_CFG_TARGET_FEATURE", "").split(",") if f]
        variables["CARGO_CFG_TARGET_FEATURE"] = ",".join(features + ["crt-static"])
    else:
        variables["VCPKGRS_DYNAMIC"] = "1"

    triplet = vcpkg_triplet(target, variables)
    root = vcpkg_root(variables)
    vcpkg = shutil.which("vcpkg", path=root) or "vcpkg"
    package = f"{LIBRARY_NAME}:{triplet}"

    listing = runner.output_text([vcpkg, "list", package], env=variables)
    if not any(line.startswith(package) for line in listing.splitlines()):
        raise ConfigurationError(
            f"{package} is not installed in {root}. Run `vcpkg install {package}` first."
        )
    return [os.path.join(root, "installed", triplet, "lib")]


def macos_system(environment, runner):
    """
    homebrew says

    > openblas is keg-only, which means it was not symlinked into /usr/local,
    > because macOS provides BLAS in Accelerate.framework.
    """
    return [HOMEBREW_OPENBLAS_LIB]


def mobile_system(environment, runner):
    path = environment.overrides.prebuilt_path
    if not path:
        raise ConfigurationError(
            f"feature `system` is enabled, but `{PREBUILT_PATH_VARIABLE}` env not set."
        )
    return [path]


STRATEGIES = {
    Platform.WINDOWS_GNU: windows_gnu_system,
    Platform.WINDOWS_MSVC: windows_msvc_system,
    Platform.MACOS: macos_system,
    Platform.MOBILE: mobile_system,
}


def discover(environment, runner):
    platform = classify_platform(environment.target)
    logger.info(f"Looking for a system OpenBLAS ({platform.value})...")
    search_paths = STRATEGIES[platform](environment, runner)
    for path in search_paths:
        logger.success(f"  - Found OpenBLAS search path {path}")
    return search_paths
