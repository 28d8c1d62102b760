"""
Delegation to an installed release.

The delegator looks at the install root, picks the newest installed version
satisfying the project constraint and replaces the current process with
that version's binary. Arguments and environment are forwarded unchanged.

tvm can also be placed on the search path under the delegated tool's own
name; it then behaves as a transparent shim (see ``is_shim_invocation``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

from packaging.version import Version

from tvm.core.config import Settings
from tvm.core.exceptions import DelegationError, InvalidInstallDirectoryError, InvalidVersionError
from tvm.core.versioning import Constraint, parse_version, select_all, sort_descending

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstalledVersion:
    """A version present in the install root."""

    version: Version
    path: Path


def discover_installed(versions_dir: Path) -> List[InstalledVersion]:
    """
    List installed versions, newest first.

    Every entry of the install root must be named after a version; an entry
    that is not is reported rather than skipped.

    Args:
        versions_dir: Install root

    Returns:
        InstalledVersion records in descending version order (empty if the
        install root does not exist)

    Raises:
        InvalidInstallDirectoryError: If an entry name is not a version
    """
    if not versions_dir.is_dir():
        logger.debug(f"Install root does not exist: {versions_dir}")
        return []

    installed = []
    for entry in versions_dir.iterdir():
        try:
            version = parse_version(entry.name)
        except InvalidVersionError as e:
            raise InvalidInstallDirectoryError(entry) from e
        installed.append(InstalledVersion(version=version, path=entry))

    return sort_descending(installed)


def is_shim_invocation(argv0: str, binary_name: str) -> bool:
    """Check whether tvm was invoked under the delegated tool's name."""
    return Path(argv0).name == binary_name


class Delegator:
    """
    Replaces the current process with the best installed release.

    Example:
        >>> delegator = Delegator(settings)
        >>> delegator.delegate(["plan", "-out=tfplan"], Constraint.parse("~> 1.5"))
    """

    def __init__(
        self,
        settings: Settings,
        execve: Callable[[str, Sequence[str], Mapping[str, str]], None] = os.execve,
    ):
        """
        Initialize delegator.

        Args:
            settings: Settings naming the install root and binary
            execve: Process replacement function (os.execve)
        """
        self.settings = settings
        self.execve = execve

    def installed_versions(self) -> List[InstalledVersion]:
        return discover_installed(self.settings.versions_dir)

    def resolve(self, constraint: Optional[Constraint] = None) -> Optional[Path]:
        """
        Find the binary of the newest usable installed version.

        Matching versions whose directory lacks the binary are reported and
        skipped in favour of the next older match.

        Args:
            constraint: Project constraint; None accepts any version

        Returns:
            Path to the binary, or None if no installed version matched

        Raises:
            InvalidInstallDirectoryError: If the install root holds a
                non-version entry
        """
        binary_name = self.settings.binary_name

        for installed in select_all(self.installed_versions(), constraint):
            binary_path = installed.path / binary_name
            if binary_path.is_file():
                logger.debug(f"Selected {binary_name} {installed.version}: {binary_path}")
                return binary_path

            logger.warning(
                f"Found {binary_name} version {installed.version} "
                f"but the {binary_name} binary is missing"
            )

        return None

    def delegate(
        self, args: Sequence[str], constraint: Optional[Constraint] = None
    ) -> Optional[Path]:
        """
        Replace the current process with the selected binary.

        Does not return when the replacement succeeds.

        Args:
            args: Arguments forwarded after the tool name
            constraint: Project constraint; None accepts any version

        Returns:
            None when no installed version matched; the binary path if a
            substitute execve returns

        Raises:
            DelegationError: If the process could not be replaced
        """
        binary_path = self.resolve(constraint)
        if binary_path is None:
            return None

        argv = [self.settings.binary_name, *args]
        logger.debug(f"Executing {binary_path} with {argv[1:]}")

        try:
            self.execve(str(binary_path), argv, os.environ)
        except OSError as e:
            raise DelegationError(f"Failed to execute {binary_path}: {e}") from e

        return binary_path


__all__ = ["InstalledVersion", "Delegator", "discover_installed", "is_shim_invocation"]
