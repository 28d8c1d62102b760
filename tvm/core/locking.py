"""
Cross-process install locks.

Two tvm processes installing the same version at once serialize on a file
lock; the second one finds the finished install and skips the download.

Usage:
    from tvm.core.locking import LockManager

    lock_manager = LockManager(settings.lock_dir)
    with lock_manager.version_lock("1.5.7"):
        # Download and install the release
        pass
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

from tvm.core.exceptions import InstallError

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages lock files for per-version installs.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (created if missing)
        """
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def lock_path(self, version: str) -> Path:
        """Lock file used for a version."""
        safe_id = version.replace("/", "-").replace("\\", "-").replace(":", "-")
        return self.lock_dir / f"install-{safe_id}.lock"

    @contextmanager
    def version_lock(self, version: str, timeout: float = 300):
        """
        Acquire the install lock for one version.

        Args:
            version: Version being installed
            timeout: Maximum wait time in seconds (default: 300 for long downloads)

        Yields:
            None

        Raises:
            InstallError: If lock can't be acquired within timeout
        """
        lock_path = self.lock_path(version)
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired install lock: {lock_path}")
                yield
                logger.debug(f"Released install lock: {lock_path}")
        except LockTimeout as e:
            raise InstallError(
                f"Could not acquire install lock for {version} after {timeout}s. "
                "Another process may be installing this version."
            ) from e


__all__ = ["LockManager"]
