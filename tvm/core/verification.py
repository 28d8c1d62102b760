"""
Checksum manifest parsing and integrity checks.

Release checksum manifests ("SHA256SUMS") hold one record per line:

    <64 hex digits><two spaces><filename>

The parser here works on any iterable of lines so it can be fed from a
network stream, a file or a plain list in tests.
"""

import logging
import re
import secrets
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

from tvm.core.exceptions import ManifestFormatError

logger = logging.getLogger(__name__)

_RECORD_RE = re.compile(r"^([0-9a-fA-F]{64})  (\S+)$")


class ChecksumStatus(Enum):
    """Outcome of checking an archive against its manifest."""

    VERIFIED = "verified"
    NO_MANIFEST = "no_manifest"
    NOT_LISTED = "not_listed"

    @property
    def is_verified(self) -> bool:
        return self is ChecksumStatus.VERIFIED


@dataclass(frozen=True)
class ManifestEntry:
    """One (digest, filename) record of a checksum manifest."""

    digest: bytes
    filename: str

    @property
    def hexdigest(self) -> str:
        return self.digest.hex()


def parse_manifest_line(line: str) -> ManifestEntry:
    """
    Parse a single manifest record.

    Args:
        line: Record text, with or without trailing newline

    Returns:
        Parsed ManifestEntry

    Raises:
        ManifestFormatError: If the record does not match the format

    Example:
        >>> entry = parse_manifest_line("ab" * 32 + "  terraform_1.5.7_linux_amd64.zip")
        >>> entry.filename
        'terraform_1.5.7_linux_amd64.zip'
    """
    match = _RECORD_RE.match(line.rstrip("\r\n"))
    if not match:
        raise ManifestFormatError(f"Bad checksum record: {line.strip()!r}")

    return ManifestEntry(digest=bytes.fromhex(match.group(1)), filename=match.group(2))


def iter_manifest(lines: Iterable[str]) -> Iterator[ManifestEntry]:
    """
    Yield manifest records in order.

    Blank lines are ignored. Malformed records are logged and skipped so a
    single bad line does not hide the records after it.

    Args:
        lines: Manifest lines

    Yields:
        ManifestEntry for every well-formed record
    """
    for line_num, line in enumerate(lines, 1):
        if not line.strip():
            continue

        try:
            yield parse_manifest_line(line)
        except ManifestFormatError as e:
            logger.warning(f"Bad format at manifest line {line_num}: {e}")


def find_manifest_entry(lines: Iterable[str], filename: str) -> Optional[ManifestEntry]:
    """
    Scan manifest records until one names the given file.

    Args:
        lines: Manifest lines (consumed only up to the match)
        filename: Base name of the archive to look for

    Returns:
        Matching entry, or None when the manifest does not list the file
    """
    for entry in iter_manifest(lines):
        if entry.filename == filename:
            return entry
    return None


def verify_digest(actual: bytes, expected: bytes) -> bool:
    """
    Compare two digests in constant time.

    Args:
        actual: Digest computed over the downloaded bytes
        expected: Digest published in the manifest

    Returns:
        True if digests are identical
    """
    return secrets.compare_digest(actual, expected)


def verify_gpg_signature(
    file_path: Path, signature_path: Path, keyring_path: Optional[Path] = None
) -> tuple[bool, str]:
    """
    Verify a detached GPG signature.

    Args:
        file_path: File to verify (the checksum manifest)
        signature_path: Detached signature file
        keyring_path: Optional path to GPG keyring

    Returns:
        (verified: bool, message: str)

    Note:
        Requires GPG to be installed. Returns (False, error) if GPG not available.
    """
    if not file_path.exists():
        return False, f"File not found: {file_path}"

    if not signature_path.exists():
        return False, f"Signature file not found: {signature_path}"

    cmd = ["gpg", "--verify"]

    if keyring_path:
        if not keyring_path.exists():
            return False, f"Keyring not found: {keyring_path}"
        cmd.extend(["--no-default-keyring", "--keyring", str(keyring_path)])

    cmd.extend([str(signature_path), str(file_path)])

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
    except FileNotFoundError:
        return False, "GPG not installed. Install gpg to verify signatures."
    except subprocess.TimeoutExpired:
        return False, "GPG verification timeout"

    if result.returncode == 0:
        return True, "GPG signature verified successfully"
    return False, f"GPG verification failed: {result.stderr.strip()}"


__all__ = [
    "ChecksumStatus",
    "ManifestEntry",
    "parse_manifest_line",
    "iter_manifest",
    "find_manifest_entry",
    "verify_digest",
    "verify_gpg_signature",
]
