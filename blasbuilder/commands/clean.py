import click
import glob
import os
import shutil
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..environment import snapshot


@click.command()
@click.option("--keep-cache", is_flag=True, help="Leave cached source trees in place.")
@click.pass_context
@handle_exceptions
def clean(ctx, keep_cache):
    """Remove the build output directory and cached source trees."""
    environment = snapshot(project_dir=(ctx.obj or {}).get("path", "."))
    logger.info("Cleaning build artifacts and cached source trees...")

    paths = [environment.out_dir]
    if not keep_cache:
        paths.extend(sorted(glob.glob(os.path.join(glob.escape(environment.cache_dir), "source_*"))))

    items_removed = 0
    for path in paths:
        if not os.path.isdir(path):
            continue
        logger.info(f"Attempting to remove directory {path}...")
        try:
            shutil.rmtree(path)
            logger.success(f"Removed directory {path}")
            items_removed += 1
        except OSError as e:
            logger.error(f"Error removing directory {path}: {e}")
            logger.info("Please check file permissions and ensure the directory is not in use.")

    if items_removed > 0:
        logger.success(f"Cleaning complete. Removed {items_removed} items.")
    else:
        logger.info("Project is already clean.")
