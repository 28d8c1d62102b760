"""
Centralized exception hierarchy for tvm.

This module defines all custom exceptions used across the codebase.
Internal operations raise these; only the CLI layer turns them into
messages and exit codes.
"""

from pathlib import Path


# ============================================================================
# Base Exceptions
# ============================================================================


class TvmError(Exception):
    """Base exception for all tvm errors."""

    pass


class ConfigError(TvmError):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


# ============================================================================
# Network Exceptions
# ============================================================================


class NetworkError(TvmError):
    """Base exception for fetch and HTTP status failures."""

    pass


class CatalogError(NetworkError):
    """Raised when the release catalog cannot be fetched or scraped."""

    pass


class DownloadError(NetworkError):
    """Raised when an archive, manifest or signature download fails."""

    pass


# ============================================================================
# Parse Exceptions
# ============================================================================


class ParseError(TvmError):
    """Base exception for malformed input."""

    pass


class InvalidVersionError(ParseError):
    """Invalid version string."""

    pass


class InvalidConstraintError(ParseError):
    """Invalid version constraint expression."""

    pass


class ManifestFormatError(ParseError):
    """Malformed checksum manifest record."""

    pass


class InvalidInstallDirectoryError(ParseError):
    """Raised when an install root entry is not named after a version."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Install directory name is not a valid version: {path}")


# ============================================================================
# Verification Exceptions
# ============================================================================


class VerificationError(TvmError):
    """Base exception for integrity check failures."""

    pass


class ChecksumError(VerificationError):
    """Raised when the archive digest does not match the manifest."""

    pass


class SignatureError(VerificationError):
    """Raised when the checksum manifest signature is rejected."""

    pass


# ============================================================================
# Not Found Exceptions
# ============================================================================


class NotFoundError(TvmError):
    """Base exception when an expected artifact is missing."""

    pass


class ArchiveMemberNotFoundError(NotFoundError):
    """Raised when a release archive does not contain the binary."""

    pass


# ============================================================================
# Filesystem / Process Exceptions
# ============================================================================


class InstallError(TvmError):
    """Raised when creating, copying or placing installed files fails."""

    pass


class DelegationError(TvmError):
    """Raised when the current process cannot be replaced."""

    pass
