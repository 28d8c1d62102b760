"""
Version parsing, constraint matching and version selection.

Versions are ``packaging.version.Version`` values. Constraints use the
comparator syntax found in project configuration files:

    ">= 0.13.0, < 1.0.0"
    "~> 1.5"            # >= 1.5, < 2.0
    "= 1.2.3"

Selection always scans newest-first, so the newest satisfying version wins.

Parsing follows PEP 440, which differs from Go-style semver on inputs the
release catalog does not publish: ``1.2.3-1`` is a post-release that sorts
after ``1.2.3`` rather than a pre-release, and ``+build`` labels take part
in equality, so ``= 1.2.3`` does not match ``1.2.3+build``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar

from packaging.version import InvalidVersion, Version

from tvm.core.exceptions import InvalidConstraintError, InvalidVersionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLAUSE_RE = re.compile(r"^\s*(~>|==|!=|>=|<=|=|>|<)?\s*(\S+)\s*$")

ORDERING_OPERATORS = {
    ">": lambda v, c: v > c,
    "<": lambda v, c: v < c,
    ">=": lambda v, c: v >= c,
    "<=": lambda v, c: v <= c,
}


def parse_version(text: str) -> Version:
    """
    Parse a version string.

    Args:
        text: Version string (e.g. '1.5.7', 'v0.12.0', '2.0.0-rc1')

    Returns:
        Parsed Version

    Raises:
        InvalidVersionError: If the string is not a valid version

    Example:
        >>> parse_version("1.5.7")
        <Version('1.5.7')>
    """
    candidate = (text or "").strip()
    if not candidate:
        raise InvalidVersionError("Version string is empty")

    try:
        return Version(candidate)
    except InvalidVersion as e:
        raise InvalidVersionError(f"Invalid version: {text!r}") from e


def _segments(version: Version, width: int) -> Tuple[int, ...]:
    release = tuple(version.release)
    return release + (0,) * (width - len(release))


@dataclass(frozen=True)
class Clause:
    """A single comparator such as '>= 1.2'."""

    operator: str
    version: Version

    def check(self, version: Version) -> bool:
        """Check whether a version satisfies this clause."""
        if self.operator in ("=", "=="):
            return version == self.version
        if self.operator == "!=":
            return version != self.version
        if self.operator == "~>":
            return self._check_pessimistic(version)

        if not self._prerelease_compatible(version):
            return False
        return ORDERING_OPERATORS[self.operator](version, self.version)

    def _prerelease_compatible(self, version: Version) -> bool:
        # A pre-release only matches a clause naming a pre-release of the
        # same release segments.
        if not version.is_prerelease:
            return True
        if not self.version.is_prerelease:
            return False
        width = max(3, len(version.release), len(self.version.release))
        return _segments(version, width) == _segments(self.version, width)

    def _check_pessimistic(self, version: Version) -> bool:
        if version.is_prerelease != self.version.is_prerelease:
            return False
        if version < self.version:
            return False

        precision = len(self.version.release)
        width = max(3, precision, len(version.release))
        wanted = _segments(self.version, width)
        actual = _segments(version, width)

        # All but the last written segment are pinned
        return actual[: precision - 1] == wanted[: precision - 1]

    def __str__(self) -> str:
        return f"{self.operator} {self.version}"


@dataclass(frozen=True)
class Constraint:
    """
    Conjunction of comparator clauses.

    A constraint without clauses accepts every version.

    Example:
        >>> constraint = Constraint.parse(">= 0.13.0, < 1.0.0")
        >>> constraint.check(parse_version("0.13.4"))
        True
    """

    clauses: Tuple[Clause, ...] = ()

    @classmethod
    def parse(cls, text: Optional[str]) -> "Constraint":
        """
        Parse a constraint expression.

        Args:
            text: Comma-separated clauses, or None/blank for "any version"

        Returns:
            Parsed Constraint

        Raises:
            InvalidConstraintError: If any clause is malformed
        """
        if text is None or not text.strip():
            return cls()

        clauses = []
        for part in text.split(","):
            match = _CLAUSE_RE.match(part)
            if not match:
                raise InvalidConstraintError(
                    f"Malformed constraint clause {part.strip()!r} in {text!r}"
                )

            operator = match.group(1) or "="
            try:
                version = parse_version(match.group(2))
            except InvalidVersionError as e:
                raise InvalidConstraintError(
                    f"Malformed constraint clause {part.strip()!r} in {text!r}: {e}"
                ) from e

            clauses.append(Clause(operator, version))

        return cls(tuple(clauses))

    @property
    def is_any(self) -> bool:
        """True when the constraint accepts every version."""
        return not self.clauses

    def check(self, version: Version) -> bool:
        """Check whether a version satisfies every clause."""
        return all(clause.check(version) for clause in self.clauses)

    def __str__(self) -> str:
        if self.is_any:
            return "any"
        return ", ".join(str(clause) for clause in self.clauses)


# ============================================================================
# Version Selector
# ============================================================================


def version_key(item: Any) -> Version:
    """Default sort key: the item itself if it is a Version, else item.version."""
    if isinstance(item, Version):
        return item
    return item.version


def sort_ascending(
    items: Iterable[T], key: Callable[[T], Version] = version_key
) -> List[T]:
    """Return a new list ordered oldest to newest."""
    return sorted(items, key=key)


def sort_descending(
    items: Iterable[T], key: Callable[[T], Version] = version_key
) -> List[T]:
    """Return a new list ordered newest to oldest."""
    return sorted(items, key=key, reverse=True)


def select_all(
    items: Iterable[T],
    constraint: Optional[Constraint] = None,
    key: Callable[[T], Version] = version_key,
) -> List[T]:
    """
    Return every item satisfying the constraint, newest first.

    Args:
        items: Candidates to choose from
        constraint: Constraint to satisfy; None accepts everything
        key: Function extracting the Version of an item

    Returns:
        Matching items in descending version order
    """
    return [
        item
        for item in sort_descending(items, key=key)
        if constraint is None or constraint.check(key(item))
    ]


def select(
    items: Iterable[T],
    constraint: Optional[Constraint] = None,
    key: Callable[[T], Version] = version_key,
) -> Optional[T]:
    """
    Pick the newest item satisfying the constraint.

    Args:
        items: Candidates to choose from
        constraint: Constraint to satisfy; None accepts everything
        key: Function extracting the Version of an item

    Returns:
        The newest matching item, or None if nothing matches

    Example:
        >>> versions = [parse_version(v) for v in ("0.12.0", "0.13.0", "1.0.0")]
        >>> select(versions, Constraint.parse(">= 0.13.0, < 1.0.0"))
        <Version('0.13.0')>
    """
    for item in sort_descending(items, key=key):
        if constraint is None or constraint.check(key(item)):
            return item

    logger.debug(f"No version satisfies constraint: {constraint}")
    return None


__all__ = [
    "Clause",
    "Constraint",
    "parse_version",
    "version_key",
    "sort_ascending",
    "sort_descending",
    "select",
    "select_all",
]
