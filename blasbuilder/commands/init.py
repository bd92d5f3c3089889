import click
import os
from .. import config as config_module
from .. import downloader
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..environment import DEFAULT_OUT_DIR, DEFAULT_SOURCE_DIR


def _get_default_config():
    return {
        "features": {
            "system": False,
            "static": False,
            "cblas": True,
            "lapacke": True,
            "cache": False,
        },
        "source": {
            "path": DEFAULT_SOURCE_DIR,
            "version": downloader.DEFAULT_VERSION,
        },
        "build": {
            "out_dir": DEFAULT_OUT_DIR,
            "args": "",
        },
        "overrides": {},
    }


@click.command()
@click.option('--non-interactive', is_flag=True, help='Run in non-interactive mode using default values.')
@click.option('--force', is_flag=True, help='Overwrite an existing blasbuilder.toml.')
@click.pass_context
@handle_exceptions
def init(ctx, non_interactive, force):
    """Create a blasbuilder.toml for this project."""
    path = (ctx.obj or {}).get("path", ".")
    config_path = os.path.join(path, config_module.CONFIG_FILE)
    if os.path.exists(config_path) and not force:
        logger.error(f"Error: {config_path} already exists. Use --force to overwrite it.")
        raise click.exceptions.Exit(1)

    conf = _get_default_config()
    if non_interactive:
        logger.info("Running in non-interactive mode with default values.")
    else:
        logger.info("Please provide the following details:")
        features = conf["features"]
        features["system"] = click.confirm("Use an OpenBLAS already installed on the system?", default=False)
        features["static"] = click.confirm("Link OpenBLAS statically?", default=False)
        if not features["system"]:
            features["cblas"] = click.confirm("Build the CBLAS interface?", default=True)
            features["lapacke"] = click.confirm("Build the LAPACKE interface?", default=True)
            features["cache"] = click.confirm("Reuse prepared source trees across builds?", default=False)
            conf["source"]["version"] = click.prompt("OpenBLAS version to fetch", default=conf["source"]["version"])

    if config_module.save_config(conf, path=path):
        logger.success(f"Configuration saved to {config_path}")
        if not conf["features"]["system"]:
            logger.info("Next steps: Run 'blasbuilder fetch' to download the OpenBLAS source.")
    else:
        raise click.exceptions.Exit(1)
