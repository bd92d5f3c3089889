"""
One-shot snapshot of every ambient input a build looks at.

Values are taken from the command line first, then the process environment
(using the names Cargo exports to build scripts), then blasbuilder.toml, and
finally from the host the tool runs on. Nothing downstream reads
``os.environ`` directly.
"""
import os
import types
from dataclasses import dataclass, field

from .cli_logger import logger
from .config import get_section, load_config
from .errors import ConfigurationError
from .features import FeatureSet
from .target import BuildTarget, default_triple, host_target, normalize_arch, platform_of, pointer_width_of

DEFAULT_SOURCE_DIR = "source"
DEFAULT_OUT_DIR = os.path.join("build", "blasbuilder")

POINTER_WIDTHS = {
    "x86_64": 64,
    "aarch64": 64,
    "i686": 32,
    "armv7": 32,
    "arm": 32,
    "thumbv7": 32,
}

# override name -> (environment variable, config key)
OVERRIDE_SOURCES = {
    "target": ("OPENBLAS_TARGET", "target"),
    "cc": ("OPENBLAS_CC", "cc"),
    "fc": ("OPENBLAS_FC", "fc"),
    "hostcc": ("OPENBLAS_HOSTCC", "hostcc"),
    "prebuilt_path": ("OPENBLAS_PREBUILD_PATH", "prebuilt_path"),
    "ios_sdkroot": ("OPENBLAS_IOS_SDKROOT", "ios_sdkroot"),
}


@dataclass(frozen=True)
class Overrides:
    target: str | None = None
    cc: str | None = None
    fc: str | None = None
    hostcc: str | None = None
    args: str | None = None
    num_jobs: int | None = None
    prebuilt_path: str | None = None
    ios_sdkroot: str | None = None


@dataclass(frozen=True)
class BuildEnvironment:
    target: BuildTarget
    features: FeatureSet
    overrides: Overrides
    project_dir: str
    source_dir: str
    cache_dir: str
    out_dir: str
    variables: types.MappingProxyType = field(default_factory=lambda: types.MappingProxyType({}), compare=False)


def _first(*values):
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _as_int(value, name):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _absolute(path, base):
    path = os.path.expanduser(str(path))
    if not os.path.isabs(path):
        path = os.path.join(base, path)
    return os.path.normpath(path)


def resolve_target(variables, section, options):
    host = host_target()

    triple = _first(options.get("triple"), variables.get("TARGET"), section.get("triple"))
    from_triple = platform_of(triple) if triple else None

    os_name = _first(options.get("os"), variables.get("CARGO_CFG_TARGET_OS"), section.get("os"))
    if os_name is None:
        os_name = from_triple[0] if from_triple else host.os

    # An empty ABI is meaningful (macOS, iOS), so only absence falls through.
    env = options.get("env")
    if env is None:
        env = variables.get("CARGO_CFG_TARGET_ENV")
    if env is None:
        env = section.get("env")
    if env is None:
        if from_triple and from_triple[0] == os_name:
            env = from_triple[1]
        else:
            env = host.env if os_name == host.os else ""

    explicit_arch = _first(options.get("arch"), variables.get("CARGO_CFG_TARGET_ARCH"), section.get("arch"))
    arch = explicit_arch
    if arch is None:
        arch = triple.split("-", 1)[0] if triple else host.arch
    arch = normalize_arch(arch)

    pointer_width = _as_int(
        _first(
            options.get("pointer_width"),
            variables.get("CARGO_CFG_TARGET_POINTER_WIDTH"),
            section.get("pointer_width"),
        ),
        "pointer width",
    )
    if pointer_width is None:
        if explicit_arch is None and triple is None:
            pointer_width = host.pointer_width
        else:
            pointer_width = POINTER_WIDTHS.get(arch) or pointer_width_of(triple or arch)
        if pointer_width is None:
            raise ConfigurationError(
                f"Cannot tell the pointer width of {triple or arch}; "
                "set CARGO_CFG_TARGET_POINTER_WIDTH or --pointer-width."
            )

    return BuildTarget(
        os=os_name,
        env=env,
        arch=arch,
        pointer_width=pointer_width,
        triple=triple or default_triple(os_name, env, arch),
    )


def resolve_overrides(variables, section, build_section, options):
    values = {}
    for name, (env_name, key) in OVERRIDE_SOURCES.items():
        values[name] = _first(options.get(name), variables.get(env_name), section.get(key))
    values["args"] = _first(options.get("args"), variables.get("OPENBLAS_ARGS"), build_section.get("args"))
    values["num_jobs"] = _as_int(
        _first(options.get("num_jobs"), variables.get("NUM_JOBS"), build_section.get("jobs")),
        "job count",
    )
    return Overrides(**values)


def snapshot(project_dir=".", variables=None, config=None, options=None, cli_features=()):
    """
    Read the whole build environment once.

    ``options`` holds command-line values: triple, os, env, arch,
    pointer_width, target, args, num_jobs, source_dir, cache_dir, out_dir.
    """
    project_dir = os.path.abspath(project_dir)
    variables = dict(os.environ if variables is None else variables)
    if config is None:
        config = load_config(project_dir)
    options = options or {}

    source_section = get_section(config, "source")
    build_section = get_section(config, "build")

    target = resolve_target(variables, get_section(config, "target"), options)
    features = FeatureSet.from_sources(variables, get_section(config, "features"), cli_features)
    overrides = resolve_overrides(variables, get_section(config, "overrides"), build_section, options)

    out_dir = _first(options.get("out_dir"), variables.get("OUT_DIR"), build_section.get("out_dir"), DEFAULT_OUT_DIR)
    environment = BuildEnvironment(
        target=target,
        features=features,
        overrides=overrides,
        project_dir=project_dir,
        source_dir=_absolute(_first(options.get("source_dir"), source_section.get("path"), DEFAULT_SOURCE_DIR), project_dir),
        cache_dir=_absolute(_first(options.get("cache_dir"), build_section.get("cache_dir"), project_dir), project_dir),
        out_dir=_absolute(str(out_dir).replace("\\", "/"), project_dir),
        variables=types.MappingProxyType(variables),
    )
    logger.info(
        f"Target: {target.triple} (os={target.os}, env={target.env or '-'}, "
        f"arch={target.arch}, pointer width={target.pointer_width})"
    )
    logger.info(f"Features: {', '.join(sorted(features.enabled)) or 'none'}")
    return environment
