import click
import os
import shutil
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..environment import snapshot
from ..errors import ConfigurationError
from ..target import APPLE_ARCH_FLAGS, Platform, canonical_target_name, classify_platform

SYSTEM_TOOLS = {
    Platform.WINDOWS_GNU: ["cygpath"],
    Platform.WINDOWS_MSVC: ["vcpkg"],
    Platform.MACOS: [],
    Platform.MOBILE: [],
}


def required_tools(environment):
    """Return the external tools a build of `environment` will invoke."""
    target = environment.target
    if environment.features.system:
        return SYSTEM_TOOLS[classify_platform(target)]

    if target.is_msvc:
        raise ConfigurationError("Non-vcpkg builds are not supported on Windows. You must use the 'system' feature.")
    tools = ["make"]
    if not environment.overrides.target:
        name = canonical_target_name(target.triple)
        if name in APPLE_ARCH_FLAGS:
            tools.append("clang")
            if target.os == "ios" and not environment.overrides.ios_sdkroot:
                tools.append("xcrun")
        else:
            tools.append(environment.overrides.cc or "cc")
    return tools


def check_environment(environment):
    ok = True
    try:
        tools = required_tools(environment)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.format_message()}")
        return False

    path = environment.variables.get("PATH")
    for tool in tools:
        location = shutil.which(tool, path=path)
        if location:
            logger.success(f"{tool} found at {location}")
        else:
            logger.error(f"{tool} not found on PATH")
            ok = False

    if environment.features.system:
        if classify_platform(environment.target) is Platform.MOBILE and not environment.overrides.prebuilt_path:
            logger.error("OPENBLAS_PREBUILD_PATH is not set; the system feature needs it on mobile targets.")
            ok = False
    elif os.path.isdir(environment.source_dir):
        logger.success(f"OpenBLAS source found at {environment.source_dir}")
    else:
        logger.warning(f"OpenBLAS source not found at {environment.source_dir}. Run 'blasbuilder fetch'.")
        ok = False
    return ok


@click.command()
@click.pass_context
@handle_exceptions
def doctor(ctx):
    """Check that the tools the configured build needs are available."""
    logger.info("Running environment check...")
    environment = snapshot(project_dir=(ctx.obj or {}).get("path", "."))
    if check_environment(environment):
        logger.success("Environment check completed successfully.")
    else:
        logger.error("Environment check found issues. Please review the warnings/errors above.")
        raise click.exceptions.Exit(1)
