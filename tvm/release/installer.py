"""
Release download, verification and installation.

This module orchestrates the install path of the pipeline:
1. Select the newest candidate satisfying the project constraint
2. Download its archive while hashing it
3. Check the digest against the published checksum manifest
4. Extract the binary into a staging directory and mark it executable
5. Rename the staging directory into the install root
6. Remove the downloaded archive
"""

import logging
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional

from packaging.version import Version

from tvm.core.config import Settings
from tvm.core.download import download_file, open_text_stream
from tvm.core.exceptions import ChecksumError, InstallError, SignatureError
from tvm.core.filesystem import extract_member, make_executable, staged_directory
from tvm.core.locking import LockManager
from tvm.core.verification import (
    ChecksumStatus,
    ManifestEntry,
    find_manifest_entry,
    verify_digest,
    verify_gpg_signature,
)
from tvm.core.versioning import Constraint, select
from tvm.release.catalog import ReleaseCandidate

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """A downloaded archive and the outcome of its checksum check."""

    archive_path: Path
    checksum_status: ChecksumStatus


@dataclass
class InstallResult:
    """Result of an install operation."""

    version: Version
    """Installed version"""

    binary_path: Path
    """Path to the installed executable"""

    checksum_status: Optional[ChecksumStatus]
    """Checksum outcome, or None when nothing was downloaded"""

    was_cached: bool
    """Whether the version was already installed"""


class ReleaseInstaller:
    """
    Downloads, verifies and installs releases into the install root.

    Example:
        >>> installer = ReleaseInstaller(settings)
        >>> result = installer.install_matching(candidates, Constraint.parse("~> 1.5"))
        >>> if result:
        ...     print(f"Installed at: {result.binary_path}")
    """

    def __init__(self, settings: Settings, lock_manager: Optional[LockManager] = None):
        """
        Initialize installer.

        Args:
            settings: Settings naming the directories and download options
            lock_manager: Optional lock manager. If None, creates one in
                the settings' lock directory.
        """
        self.settings = settings
        self.lock_manager = lock_manager or LockManager(settings.lock_dir)

    def version_dir(self, version: Version) -> Path:
        return self.settings.versions_dir / str(version)

    def binary_path(self, version: Version) -> Path:
        return self.version_dir(version) / self.settings.binary_name

    def is_installed(self, version: Version) -> bool:
        """Check whether a version's binary is present in the install root."""
        return self.binary_path(version).is_file()

    def install_matching(
        self,
        candidates: Iterable[ReleaseCandidate],
        constraint: Optional[Constraint] = None,
        force: bool = False,
    ) -> Optional[InstallResult]:
        """
        Install the newest candidate satisfying the constraint.

        Only that one candidate is attempted. A verification failure is
        raised rather than falling back to an older version.

        Args:
            candidates: Remote release candidates
            constraint: Project constraint; None accepts any version
            force: Reinstall even if already installed

        Returns:
            InstallResult, or None if no candidate satisfies the constraint

        Raises:
            ChecksumError: If the archive does not match its manifest
            TvmError: On any network or filesystem failure
        """
        candidate = select(candidates, constraint)
        if candidate is None:
            logger.debug(f"No release candidate satisfies: {constraint}")
            return None

        return self.install(candidate, force=force)

    def install(self, candidate: ReleaseCandidate, force: bool = False) -> InstallResult:
        """
        Install a single release candidate.

        Args:
            candidate: Release to install
            force: Reinstall even if already installed

        Returns:
            InstallResult describing the installed binary

        Raises:
            InstallError: If the candidate lacks a version or download URL
            ChecksumError: If the archive does not match its manifest
            TvmError: On any network or filesystem failure
        """
        if candidate.version is None or not candidate.url:
            raise InstallError("Release candidate needs a version and a download URL")

        version = candidate.version
        final_dir = self.version_dir(version)
        binary_name = self.settings.binary_name

        with self.lock_manager.version_lock(str(version)):
            if not force and self.is_installed(version):
                logger.info(f"{binary_name} {version} is already installed")
                return InstallResult(
                    version=version,
                    binary_path=self.binary_path(version),
                    checksum_status=None,
                    was_cached=True,
                )

            logger.info(f"Installing {binary_name} {version} from {candidate.url}")
            fetched = self.fetch_and_verify(candidate)

            try:
                with staged_directory(self.settings.staging_dir, final_dir) as stage:
                    binary = extract_member(
                        fetched.archive_path, binary_name, stage / binary_name
                    )
                    make_executable(binary)
            finally:
                self._remove_archive(fetched.archive_path)

        return InstallResult(
            version=version,
            binary_path=self.binary_path(version),
            checksum_status=fetched.checksum_status,
            was_cached=False,
        )

    def fetch_and_verify(self, candidate: ReleaseCandidate) -> FetchResult:
        """
        Download a candidate's archive and check it against its manifest.

        The digest is computed while the archive is written. A missing
        manifest, or a manifest that does not list the archive, is a warning;
        a digest mismatch deletes the archive and raises.

        Args:
            candidate: Release to download

        Returns:
            FetchResult; the caller owns deleting the archive

        Raises:
            ChecksumError: If the digest does not match
            SignatureError: If signature checking is enabled and fails
            DownloadError: If any download fails
        """
        archive_path = self.settings.downloads_dir / candidate.archive_name
        result = download_file(
            candidate.url,
            archive_path,
            timeout=self.settings.timeout,
            max_retries=self.settings.max_retries,
        )

        try:
            status = self._check_digest(candidate, result.sha256)
        except Exception:
            self._remove_archive(archive_path)
            raise

        return FetchResult(archive_path=archive_path, checksum_status=status)

    def _check_digest(self, candidate: ReleaseCandidate, actual: bytes) -> ChecksumStatus:
        name = candidate.archive_name

        if not candidate.checksum_url:
            logger.warning(f"No checksum found for {name}")
            return ChecksumStatus.NO_MANIFEST

        entry = self._lookup_manifest_entry(candidate)
        if entry is None:
            logger.warning(f"No checksum found for {name} in {candidate.checksum_url}")
            return ChecksumStatus.NOT_LISTED

        if not verify_digest(actual, entry.digest):
            raise ChecksumError(
                f"Checksum verification failed for {name}: "
                f"expected {entry.hexdigest}, got {actual.hex()}"
            )

        logger.debug(f"Checksum verified for {name}")
        return ChecksumStatus.VERIFIED

    def _lookup_manifest_entry(self, candidate: ReleaseCandidate) -> Optional[ManifestEntry]:
        if self.settings.verify_signature:
            with self._signed_manifest(candidate) as lines:
                return find_manifest_entry(lines, candidate.archive_name)

        with open_text_stream(candidate.checksum_url, timeout=self.settings.timeout) as lines:
            return find_manifest_entry(lines, candidate.archive_name)

    @contextmanager
    def _signed_manifest(self, candidate: ReleaseCandidate) -> Iterator[Iterator[str]]:
        """Download the manifest, check its GPG signature and yield its lines."""
        self.settings.downloads_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(dir=self.settings.downloads_dir) as tmp:
            manifest_path = Path(tmp) / "SHA256SUMS"
            download_file(
                candidate.checksum_url,
                manifest_path,
                timeout=self.settings.timeout,
                max_retries=self.settings.max_retries,
            )

            if not candidate.checksum_signature_url:
                logger.warning(f"No checksum signature found for {candidate.version}")
            else:
                signature_path = Path(tmp) / "SHA256SUMS.sig"
                download_file(
                    candidate.checksum_signature_url,
                    signature_path,
                    timeout=self.settings.timeout,
                    max_retries=self.settings.max_retries,
                )
                verified, message = verify_gpg_signature(
                    manifest_path, signature_path, self.settings.gpg_keyring
                )
                if not verified:
                    raise SignatureError(message)
                logger.debug(message)

            with open(manifest_path, "r", encoding="utf-8") as f:
                yield f

    def _remove_archive(self, archive_path: Path) -> None:
        try:
            archive_path.unlink(missing_ok=True)
            logger.debug(f"Removed archive: {archive_path}")
        except OSError as e:
            logger.warning(f"Failed to remove archive {archive_path}: {e}")


__all__ = ["ReleaseInstaller", "InstallResult", "FetchResult"]
