import os
import requests
import tarfile
import shutil
import contextlib
from ..cli_logger import logger
from ..errors import ConfigurationError, FetchError

STAGING_SUFFIX = "_tmp"

# -------------------- Source trees --------------------

def staging_path(destination):
    return f"{destination}{STAGING_SUFFIX}"


def prepare_source_tree(source_dir, destination):
    """
    Make sure `destination` holds a complete copy of `source_dir`.

    The copy is written to a sibling staging directory and renamed into place,
    so `destination` either does not exist or is complete. A staging directory
    left behind by an interrupted run is discarded first.
    Returns True when a copy was made, False when the tree already existed.
    """
    if os.path.exists(destination):
        logger.info(f"  - Reusing source tree at {destination}")
        return False

    if not os.path.isdir(source_dir):
        raise ConfigurationError(
            f"Vendored OpenBLAS source not found at {source_dir}. "
            "Run 'blasbuilder fetch' or point [source] path at an OpenBLAS checkout."
        )

    staging = staging_path(destination)
    if os.path.exists(staging):
        logger.warning(f"  - Removing stale staging copy {staging}")
        shutil.rmtree(staging)

    parent = os.path.dirname(os.path.abspath(destination))
    os.makedirs(parent, exist_ok=True)
    logger.info(f"  - Copying {source_dir} to {staging}...")
    shutil.copytree(source_dir, staging, symlinks=True)
    os.rename(staging, destination)
    logger.success(f"  - Source tree ready at {destination}")
    return True

# -------------------- Helpers: safe paths & extraction --------------------

def _safe_join(base, *paths):
    """Safely join paths, preventing path traversal attacks."""
    base = os.path.abspath(base)
    final = os.path.abspath(os.path.join(base, *paths))
    if not final.startswith(base + os.sep) and final != base:
        raise IOError(f"Unsafe path detected: {final}")
    return final

def _safe_extract_tar(tar_ref: tarfile.TarFile, dest_dir: str, log_each=False):
    """Safely extract a tar file, preventing path traversal attacks."""
    for member in tar_ref.getmembers():
        # deny absolute or parent traversal
        member_path = _safe_join(dest_dir, member.name)
        if member.isdir():
            os.makedirs(member_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(member_path), exist_ok=True)
        if log_each:
            logger.step_info(f"extracting: {member.name}", indent=2)
        # Links are written as copies of the archive member they point at.
        try:
            src = tar_ref.extractfile(member)
        except KeyError as e:
            raise FetchError(f"{member.name} links to {member.linkname}, which is not in the archive") from e
        if src is None:
            continue
        with src as src_file:
            with open(member_path, "wb") as out:
                shutil.copyfileobj(src_file, out)
            # Preserve file permissions
            if member.mode:
                os.chmod(member_path, member.mode)


def extract(filepath, dest_dir, verbose=False):
    """Extracts a tar archive into dest_dir and removes the archive."""
    os.makedirs(dest_dir, exist_ok=True)
    if not tarfile.is_tarfile(filepath):
        raise FetchError(f"Unsupported archive type for {os.path.basename(filepath)}")

    try:
        with tarfile.open(filepath, 'r:*') as tar:
            _safe_extract_tar(tar, dest_dir, log_each=verbose)
    except (tarfile.TarError, IOError) as e:
        raise FetchError(f"Error during extraction of {filepath}: {e}") from e

    with contextlib.suppress(OSError):
        os.remove(filepath)

    logger.success(f"Successfully extracted to {dest_dir}")
    return dest_dir

# -------------------- Download & Extract --------------------

def download_and_extract(url, dest_dir, filename=None, timeout=60, verbose=False):
    """Download an archive into dest_dir and extract it there."""
    os.makedirs(dest_dir, exist_ok=True)
    if filename is None:
        filename = url.split('/')[-1]
    filepath = os.path.join(dest_dir, filename)
    temp_filepath = filepath + ".tmp"

    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            total_size = int(r.headers.get('content-length', 0))

            with open(temp_filepath, 'wb') as f:
                chunks = logger.progress(
                    r.iter_content(chunk_size=1024 * 256),  # 256KB chunks
                    description=f"Downloading {filename}",
                    total=total_size,
                )
                for chunk in chunks:
                    if chunk:  # keep-alive chunks may be empty
                        f.write(chunk)
    except requests.exceptions.RequestException as e:
        with contextlib.suppress(OSError):
            if os.path.exists(temp_filepath):
                os.remove(temp_filepath)
        raise FetchError(f"Error downloading {url}: {e}") from e

    # Atomic rename
    os.replace(temp_filepath, filepath)
    logger.step_info(f"Archive:  {filename}")

    return extract(filepath, dest_dir, verbose=verbose)
