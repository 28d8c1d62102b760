"""
Project version constraint discovery.

The constraint comes from the project directory:

1. ``tvm.yaml`` with a ``required_version`` key, e.g.::

       required_version: ">= 1.3.0, < 2.0.0"

2. Otherwise every ``*.tf`` file in the project root is scanned for
   ``required_version = "<expr>"`` settings. Distinct expressions are all
   enforced.

No constraint means any version is accepted.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from tvm.core.config import load_yaml_config
from tvm.core.exceptions import ConfigError
from tvm.core.versioning import Constraint

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = "tvm.yaml"

_REQUIRED_VERSION_RE = re.compile(r'^\s*required_version\s*=\s*"([^"]*)"', re.MULTILINE)


def _from_project_config(project_root: Path) -> Optional[str]:
    config = load_yaml_config(project_root / PROJECT_CONFIG_NAME)
    value = config.get("required_version")
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(
            f"required_version in {project_root / PROJECT_CONFIG_NAME} must be a string"
        )
    return value


def _from_terraform_files(project_root: Path) -> Optional[str]:
    expressions: List[str] = []

    for tf_file in sorted(project_root.glob("*.tf")):
        try:
            content = tf_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read {tf_file}: {e}") from e

        for match in _REQUIRED_VERSION_RE.finditer(content):
            expression = match.group(1).strip()
            if expression and expression not in expressions:
                logger.debug(f"Found required_version {expression!r} in {tf_file.name}")
                expressions.append(expression)

    if not expressions:
        return None
    return ", ".join(expressions)


def read_required_version(project_root: Path) -> Optional[str]:
    """
    Read the project's declared version constraint.

    Args:
        project_root: Project directory

    Returns:
        Constraint expression, or None if the project declares none

    Raises:
        ConfigError: If the project configuration cannot be read
    """
    project_root = Path(project_root)

    expression = _from_project_config(project_root)
    if expression is None:
        expression = _from_terraform_files(project_root)

    return expression


def load_constraint(project_root: Path) -> Constraint:
    """
    Read and parse the project's version constraint.

    Raises:
        ConfigError: If the project configuration cannot be read
        InvalidConstraintError: If the expression is malformed
    """
    constraint = Constraint.parse(read_required_version(project_root))
    logger.debug(f"Project constraint: {constraint}")
    return constraint


__all__ = ["PROJECT_CONFIG_NAME", "read_required_version", "load_constraint"]
