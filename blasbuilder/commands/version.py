import click
import importlib.metadata
from .. import __version__
from ..cli_logger import logger

@click.command()
def version():
    """Print the version of blasbuilder."""
    try:
        ver = importlib.metadata.version("blasbuilder")
    except importlib.metadata.PackageNotFoundError:
        ver = __version__
    logger.info(f"blasbuilder version {ver}")
