"""
Exec command implementation.

Replaces the current process with the newest installed version satisfying
the project constraint.
"""

import logging

from tvm.cli.utils import load_cli_settings, load_project_constraint
from tvm.release.delegator import Delegator

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the exec command.

    Args:
        args: Parsed arguments; ``forwarded_args`` holds the tool's arguments

    Returns:
        Exit code (0 also when no installed version matched)
    """
    settings = load_cli_settings(args)
    constraint = load_project_constraint(args)

    binary_path = Delegator(settings).delegate(
        list(getattr(args, "forwarded_args", [])), constraint
    )
    if binary_path is not None:
        return 0

    logger.warning(
        f"None of the installed {settings.binary_name} versions matched the "
        f"constraints ({constraint}). Run 'tvm install' first."
    )
    return 0
