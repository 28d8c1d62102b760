"""
Shared utilities for CLI commands.

Provides the settings and project constraint every command starts from.
"""

import logging
from pathlib import Path

from tvm.core.config import Settings, ensure_directories, load_settings
from tvm.core.versioning import Constraint
from tvm.release.project import load_constraint

logger = logging.getLogger(__name__)


def load_cli_settings(args) -> Settings:
    """
    Build settings for a command and create the directories it needs.

    Args:
        args: Parsed arguments with an optional ``config`` path

    Returns:
        Settings instance
    """
    config_file = getattr(args, "config", None)
    return ensure_directories(load_settings(config_file))


def load_project_constraint(args) -> Constraint:
    """
    Load the version constraint of the project the command runs in.

    Args:
        args: Parsed arguments with an optional ``project_root`` path

    Returns:
        Parsed constraint (accepts any version if the project declares none)
    """
    project_root = getattr(args, "project_root", None) or Path.cwd()
    return load_constraint(Path(project_root).resolve())
