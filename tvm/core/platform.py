"""
Platform detection for tvm.

This module detects the current operating system and CPU architecture and
reports them using the naming the release catalog uses in its
``data-os``/``data-arch`` attributes (e.g. ``linux``/``amd64``,
``darwin``/``arm64``).

Usage:
    from tvm.core.platform import detect_platform

    platform_info = detect_platform()
    print(f"Selecting downloads for {platform_info}")
"""

import functools
import platform
from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformInfo:
    """
    Platform a release archive must be built for.

    Attributes:
        os: Operating system ('linux', 'darwin', 'windows', 'freebsd', ...)
        arch: CPU architecture ('amd64', 'arm64', '386', 'arm')
    """

    os: str
    arch: str

    def matches(self, os_name: str, arch: str) -> bool:
        """Check whether catalog metadata targets this platform."""
        return self.os == os_name and self.arch == arch

    def __str__(self) -> str:
        return f"{self.os}_{self.arch}"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo for the running interpreter

    Example:
        >>> detect_platform()
        PlatformInfo(os='linux', arch='amd64')
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Catalog OS name

    Raises:
        RuntimeError: If OS is not supported
    """
    system = platform.system().lower()

    if system in ("linux", "darwin", "windows", "freebsd", "openbsd"):
        return system
    elif system == "sunos":
        return "solaris"
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Catalog architecture name
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "amd64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "386"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


def clear_platform_cache():
    """Clear the cached platform detection result."""
    detect_platform.cache_clear()


__all__ = ["PlatformInfo", "detect_platform", "clear_platform_cache"]
