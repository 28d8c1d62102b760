"""
Install command implementation.

Installs the newest published version satisfying the project constraint.
"""

import logging

from tvm.cli.utils import load_cli_settings, load_project_constraint
from tvm.core.verification import ChecksumStatus
from tvm.release.catalog import CatalogScraper
from tvm.release.installer import ReleaseInstaller

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success or when nothing matched)
    """
    settings = load_cli_settings(args)
    constraint = load_project_constraint(args)
    name = settings.binary_name

    candidates = CatalogScraper(settings).discover()
    logger.debug(f"Selecting among {len(candidates)} releases with constraint: {constraint}")

    result = ReleaseInstaller(settings).install_matching(
        candidates, constraint, force=getattr(args, "force", False)
    )

    if result is None:
        print(f"None of the available {name} versions matched the constraints")
        return 0

    if result.was_cached:
        print(f"{name} version {result.version} is already installed")
        return 0

    if result.checksum_status is not ChecksumStatus.VERIFIED:
        print(f"Installed {name} version {result.version} without checksum verification")

    print(f"Successfully installed {name} version {result.version}")
    return 0
