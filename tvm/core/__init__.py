"""
Core functionality for tvm.

This package contains the foundational modules the release pipeline
depends on.
"""

from .config import Settings, load_settings, ensure_directories
from .platform import PlatformInfo, detect_platform
from .versioning import (
    Constraint,
    parse_version,
    select,
    select_all,
    sort_ascending,
    sort_descending,
)
from .exceptions import (
    TvmError,
    ConfigError,
    NetworkError,
    CatalogError,
    DownloadError,
    ParseError,
    InvalidVersionError,
    InvalidConstraintError,
    ManifestFormatError,
    InvalidInstallDirectoryError,
    VerificationError,
    ChecksumError,
    SignatureError,
    NotFoundError,
    ArchiveMemberNotFoundError,
    InstallError,
    DelegationError,
)

__all__ = [
    "Settings",
    "load_settings",
    "ensure_directories",
    "PlatformInfo",
    "detect_platform",
    "Constraint",
    "parse_version",
    "select",
    "select_all",
    "sort_ascending",
    "sort_descending",
    "TvmError",
    "ConfigError",
    "NetworkError",
    "CatalogError",
    "DownloadError",
    "ParseError",
    "InvalidVersionError",
    "InvalidConstraintError",
    "ManifestFormatError",
    "InvalidInstallDirectoryError",
    "VerificationError",
    "ChecksumError",
    "SignatureError",
    "NotFoundError",
    "ArchiveMemberNotFoundError",
    "InstallError",
    "DelegationError",
]
