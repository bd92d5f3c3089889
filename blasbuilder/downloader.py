import os
import shutil
from .cli_logger import logger
from .errors import FetchError
from .utils import download_and_extract, staging_path

DEFAULT_VERSION = "0.3.28"
OPENBLAS_URL = "https://github.com/OpenMathLib/OpenBLAS/releases/download/v{version}/OpenBLAS-{version}.tar.gz"
RETIRED_SUFFIX = "_old"


def _archive_root(extract_dir):
    """Return the single top-level directory of an unpacked archive, if there is one."""
    entries = [e for e in os.listdir(extract_dir) if not e.startswith(".")]
    if len(entries) == 1 and os.path.isdir(os.path.join(extract_dir, entries[0])):
        return os.path.join(extract_dir, entries[0])
    return extract_dir


def _replace_tree(staging, source_dir):
    """Rename `staging` to `source_dir`, keeping the previous tree until the rename succeeded."""
    if not os.path.exists(source_dir):
        os.rename(staging, source_dir)
        return

    previous = f"{source_dir}{RETIRED_SUFFIX}"
    if os.path.exists(previous):
        shutil.rmtree(previous)
    os.rename(source_dir, previous)
    try:
        os.rename(staging, source_dir)
    except OSError:
        os.rename(previous, source_dir)
        raise
    shutil.rmtree(previous, ignore_errors=True)


def fetch_source(source_dir, version=DEFAULT_VERSION, url=None, force=False, verbose=False):
    """
    Download an OpenBLAS release and install it as the vendored source tree.

    The unpacked tree is moved into a staging directory next to
    `source_dir` and renamed into place, so an interrupted fetch never
    leaves a partial `source_dir` behind.
    """
    if os.path.exists(source_dir) and not force:
        logger.info(f"OpenBLAS source already present at {source_dir}")
        return source_dir

    url = url or OPENBLAS_URL.format(version=version)
    logger.info(f"Fetching OpenBLAS source from {url}...")

    download_dir = f"{source_dir}_download"
    if os.path.exists(download_dir):
        shutil.rmtree(download_dir)

    try:
        extracted = download_and_extract(url, download_dir, verbose=verbose)
        root = _archive_root(extracted)
        if not os.path.exists(os.path.join(root, "Makefile")):
            raise FetchError(f"{url} does not look like an OpenBLAS source archive (no Makefile)")

        staging = staging_path(source_dir)
        if os.path.exists(staging):
            shutil.rmtree(staging)
        shutil.move(root, staging)
        _replace_tree(staging, source_dir)
    finally:
        shutil.rmtree(download_dir, ignore_errors=True)

    logger.success(f"OpenBLAS source ready at {source_dir}")
    return source_dir
