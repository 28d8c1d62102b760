"""
Release pipeline: catalog discovery, installation and delegation.
"""

from .catalog import CatalogScraper, ReleaseCandidate
from .installer import ReleaseInstaller, InstallResult, FetchResult
from .delegator import Delegator, InstalledVersion, discover_installed, is_shim_invocation
from .project import load_constraint, read_required_version

__all__ = [
    "CatalogScraper",
    "ReleaseCandidate",
    "ReleaseInstaller",
    "InstallResult",
    "FetchResult",
    "Delegator",
    "InstalledVersion",
    "discover_installed",
    "is_shim_invocation",
    "load_constraint",
    "read_required_version",
]
