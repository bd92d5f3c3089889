import click
import os
from .. import config as config_module
from .. import downloader
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..environment import DEFAULT_SOURCE_DIR


@click.command()
@click.option("--version", "openblas_version", default=None, help="OpenBLAS release to download.")
@click.option("--url", default=None, help="Download this archive instead of the GitHub release.")
@click.option("--force", is_flag=True, help="Replace an existing source directory.")
@click.option("--verbose", "-v", is_flag=True, help="List every extracted file.")
@click.pass_context
@handle_exceptions
def fetch(ctx, openblas_version, url, force, verbose):
    """Download the OpenBLAS source used for from-source builds."""
    path = (ctx.obj or {}).get("path", ".")
    source = config_module.get_section(config_module.load_config(path), "source")

    source_dir = source.get("path") or DEFAULT_SOURCE_DIR
    if not os.path.isabs(source_dir):
        source_dir = os.path.join(os.path.abspath(path), source_dir)

    downloader.fetch_source(
        source_dir,
        version=openblas_version or source.get("version") or downloader.DEFAULT_VERSION,
        url=url or source.get("url") or None,
        force=force,
        verbose=verbose,
    )
