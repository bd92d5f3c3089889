import os

from .cli_logger import logger
from .discovery import discover
from .errors import ConfigurationError
from .target import resolve_build_parameters
from .utils import LinkDirective, link_kind, prepare_source_tree

MAKE = "make"
MAKE_TARGETS = ["libs", "netlib", "shared"]

# OpenBLAS installs under its default PREFIX, relative to DESTDIR.
INSTALL_LIB_SUBDIR = os.path.join("opt", "OpenBLAS", "lib")


def _yes_no(enabled):
    return "YES" if enabled else "NO"


def source_tree_location(environment, params):
    name = f"source_{params.tree_key.lower()}"
    base = environment.cache_dir if environment.features.cache else environment.out_dir
    return os.path.join(base, name)


def make_command(environment, params):
    """Build the `make` argument vector for OpenBLAS."""
    features = environment.features
    command = [MAKE, *MAKE_TARGETS]
    command.append(f"BINARY={environment.target.pointer_width}")
    command.append(f"{_yes_no(features.cblas)}_CBLAS=1")
    command.append(f"{_yes_no(features.lapacke)}_LAPACKE=1")
    command.extend(params.extra_args)
    if params.num_jobs:
        command.append(f"-j{params.num_jobs}")
    command.append(f"TARGET={params.toolchain_target_name}")
    if params.hostcc:
        command.append(f"HOSTCC={params.hostcc}")
    if params.cc:
        command.append(f"CC={params.cc}")
    if params.cflags:
        command.append(f"CFLAGS={params.cflags}")
    if params.no_fortran:
        command.append("NOFORTRAN=1")
    for role, value in params.compiler_overrides:
        command.append(f"{role}={value}")
    return command


def install_command(environment):
    return [MAKE, "install", f"DESTDIR={environment.out_dir}"]


def build_from_source(environment, runner):
    """Build OpenBLAS from the vendored source and return the library search path."""
    if environment.target.is_msvc:
        raise ConfigurationError(
            "Non-vcpkg builds are not supported on Windows. You must use the 'system' feature."
        )

    logger.info("Building OpenBLAS from source...")
    params = resolve_build_parameters(environment.target, environment.overrides, runner)

    source_tree = source_tree_location(environment, params)
    prepare_source_tree(environment.source_dir, source_tree)

    os.makedirs(environment.out_dir, exist_ok=True)
    runner.run(make_command(environment, params), cwd=source_tree)
    runner.run(install_command(environment), cwd=source_tree)

    lib_dir = os.path.join(environment.out_dir, INSTALL_LIB_SUBDIR)
    logger.success(f"OpenBLAS installed into {lib_dir}")
    return [lib_dir]


def resolve(environment, runner):
    """Resolve OpenBLAS for `environment` and describe how to link it."""
    kind = link_kind(environment.features)
    if environment.features.system:
        search_paths = discover(environment, runner)
    else:
        search_paths = build_from_source(environment, runner)
    return LinkDirective(search_paths=tuple(search_paths), link_kind=kind)
