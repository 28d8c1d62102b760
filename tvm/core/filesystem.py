"""
File system primitives for installing releases.

This module provides:
- Single-member extraction from zip archives
- Staged directories that are renamed into place only when complete
- Safe directory removal guarded by a required prefix

A version directory under the install root only ever appears through a
rename, so a crash mid-install leaves nothing behind that looks installed.
"""

import logging
import os
import shutil
import stat
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from tvm.core.exceptions import ArchiveMemberNotFoundError, InstallError

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = (
    stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH
)  # 0o755


# ============================================================================
# Archive Extraction
# ============================================================================


def extract_member(
    archive_path: Union[str, Path], member_name: str, destination: Union[str, Path]
) -> Path:
    """
    Extract exactly one named entry from a zip archive.

    No other entries are read or written.

    Args:
        archive_path: Path to the zip archive
        member_name: Exact entry name to extract (e.g. 'terraform')
        destination: File path to write the entry to

    Returns:
        Path to the extracted file

    Raises:
        ArchiveMemberNotFoundError: If the archive has no such entry
        InstallError: If the archive cannot be read or the file written

    Example:
        >>> extract_member("terraform_1.5.7_linux_amd64.zip", "terraform", staging / "terraform")
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    try:
        with zipfile.ZipFile(archive_path) as archive:
            try:
                info = archive.getinfo(member_name)
            except KeyError:
                raise ArchiveMemberNotFoundError(
                    f"Archive {archive_path.name} does not contain '{member_name}'"
                ) from None

            with archive.open(info) as src, open(destination, "wb") as dst:
                shutil.copyfileobj(src, dst)
    except zipfile.BadZipFile as e:
        raise InstallError(f"Failed to open archive {archive_path}: {e}") from e
    except OSError as e:
        raise InstallError(f"Failed to extract {member_name} from {archive_path}: {e}") from e

    logger.debug(f"Extracted {member_name} to {destination}")
    return destination


def make_executable(path: Union[str, Path]) -> None:
    """
    Set owner/group/other execute permissions (mode 0755).

    Raises:
        InstallError: If permissions cannot be changed
    """
    try:
        os.chmod(path, EXECUTABLE_MODE)
    except OSError as e:
        raise InstallError(f"Failed to make {path} executable: {e}") from e


# ============================================================================
# Safe Directory Operations
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        InstallError: If deletion fails

    Example:
        >>> safe_rmtree(settings.staging_dir / "tmp123", require_prefix=settings.staging_dir)
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not path.is_relative_to(require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise InstallError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise InstallError(f"Failed to remove directory '{path}': {e}") from e


@contextmanager
def staged_directory(staging_root: Path, final_path: Path) -> Iterator[Path]:
    """
    Build a directory in a staging area and rename it into place.

    The staging root must be on the same filesystem as ``final_path`` so the
    rename is atomic. On a clean exit an existing ``final_path`` (for example
    a stale directory missing its binary) is replaced. On error the staging
    directory is removed and ``final_path`` is left untouched.

    Args:
        staging_root: Directory holding in-progress builds
        final_path: Where the finished directory must appear

    Yields:
        Path of the empty staging directory to populate

    Raises:
        InstallError: If the staging directory cannot be created or renamed

    Example:
        >>> with staged_directory(settings.staging_dir, settings.versions_dir / "1.5.7") as tmp:
        ...     extract_member(archive, "terraform", tmp / "terraform")
    """
    try:
        staging_root.mkdir(parents=True, exist_ok=True)
        stage = Path(
            tempfile.mkdtemp(dir=staging_root, prefix=f"{final_path.name}.")
        )
    except OSError as e:
        raise InstallError(f"Failed to create staging directory in {staging_root}: {e}") from e

    try:
        yield stage

        if final_path.exists():
            logger.debug(f"Replacing existing directory: {final_path}")
            safe_rmtree(final_path, require_prefix=final_path.parent)

        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            os.chmod(stage, 0o755)
            os.rename(stage, final_path)
        except OSError as e:
            raise InstallError(f"Failed to move {stage} to {final_path}: {e}") from e

        logger.debug(f"Renamed {stage} to {final_path}")
    finally:
        if stage.exists():
            safe_rmtree(stage, require_prefix=staging_root)


__all__ = [
    "EXECUTABLE_MODE",
    "extract_member",
    "make_executable",
    "safe_rmtree",
    "staged_directory",
]
