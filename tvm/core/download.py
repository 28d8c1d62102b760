"""
Streaming HTTP downloads with single-pass hashing and retry logic.

This module provides:
- Archive downloads that write and hash the body in one pass
- Retry logic with exponential backoff for transport errors
- Lazy line iteration over small text resources (checksum manifests)

Every response is closed on every exit path.
"""

import hashlib
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import requests
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout

from tvm.core.exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class StreamingHasher:
    """Compute a SHA-256 digest incrementally for streaming downloads."""

    def __init__(self):
        self.hasher = hashlib.sha256()

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def digest(self) -> bytes:
        """Get final hash value as raw bytes."""
        return self.hasher.digest()


@dataclass
class DownloadResult:
    """Result of a completed download."""

    path: Path
    """Where the body was written"""

    sha256: bytes
    """SHA-256 digest of the bytes written"""

    size: int
    """Number of bytes written"""


def download_file(
    url: str,
    destination: Path,
    timeout: float = 30,
    max_retries: int = 3,
) -> DownloadResult:
    """
    Download a file, hashing it while it is written.

    Args:
        url: URL to download from
        destination: Local path to save file
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts

    Returns:
        DownloadResult with the digest of the written bytes

    Raises:
        DownloadError: If download fails after retries or the server
            answers with an error status
        ValueError: If URL or destination is invalid

    Example:
        >>> result = download_file(url, Path("cache/terraform_1.5.7_linux_amd64.zip"))
        >>> result.sha256.hex()
        'c0ed7bc3...'
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    for attempt in range(max_retries):
        try:
            return _stream_to_file(url, destination, timeout)
        except HTTPError as e:
            # Error statuses are not transient
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Error getting {url}: {e}") from e
        except (Timeout, ConnectionError, RequestException) as e:
            destination.unlink(missing_ok=True)
            if attempt == max_retries - 1:
                raise DownloadError(
                    f"Download failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)
        except OSError as e:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Failed to write {destination}: {e}") from e

    raise DownloadError(f"Download failed for unknown reason: {url}")


def _stream_to_file(url: str, destination: Path, timeout: float) -> DownloadResult:
    """Perform one download attempt."""
    logger.debug(f"Downloading from {url}")

    hasher = StreamingHasher()
    size = 0

    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()

        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
                    hasher.update(chunk)
                    size += len(chunk)

    logger.debug(f"Download complete: {destination} ({size} bytes)")
    return DownloadResult(path=destination, sha256=hasher.digest(), size=size)


@contextmanager
def open_text_stream(url: str, timeout: float = 30) -> Iterator[Iterator[str]]:
    """
    Open a text resource and yield a lazy iterator over its lines.

    Lines are read from the network only as the caller consumes them, so a
    caller that stops early never downloads the rest of the body.

    Args:
        url: URL of the text resource
        timeout: Request timeout in seconds

    Yields:
        Iterator of decoded lines without line terminators

    Raises:
        DownloadError: If the request fails or returns an error status

    Example:
        >>> with open_text_stream(checksum_url) as lines:
        ...     for line in lines:
        ...         print(line)
    """
    try:
        response = requests.get(url, stream=True, timeout=timeout)
    except RequestException as e:
        raise DownloadError(f"Failed to get {url}: {e}") from e

    try:
        if not response.ok:
            raise DownloadError(
                f"Error getting {url}: {response.status_code} {response.reason}"
            )
        if response.encoding is None:
            response.encoding = "utf-8"
        yield _decoded_lines(response, url)
    finally:
        response.close()


def _decoded_lines(response: requests.Response, url: str) -> Iterator[str]:
    try:
        for line in response.iter_lines(decode_unicode=True):
            yield line
    except RequestException as e:
        raise DownloadError(f"Failed to read {url}: {e}") from e


__all__ = [
    "StreamingHasher",
    "DownloadResult",
    "download_file",
    "open_text_stream",
]
