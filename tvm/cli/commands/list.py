"""
List command implementation.

Prints remotely available versions (or installed versions with
``--installed``) in ascending order, one per line.
"""

import logging

from tvm.cli.utils import load_cli_settings
from tvm.core.versioning import sort_ascending
from tvm.release.catalog import CatalogScraper
from tvm.release.delegator import discover_installed

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = load_cli_settings(args)

    if getattr(args, "installed", False):
        items = discover_installed(settings.versions_dir)
    else:
        logger.debug(f"Listing releases from {settings.base_url}")
        items = CatalogScraper(settings).discover()

    for item in sort_ascending(items):
        print(item.version)

    return 0
