"""
Remote release catalog scraper.

The catalog is a plain HTML index whose list items link to one detail page
per version. Each detail page links the downloadable archives, tagged with
``data-os``, ``data-arch`` and ``data-version`` attributes, next to the
release's ``_SHA256SUMS`` manifest and ``_SHA256SUMS.sig`` signature.

Detail pages are fetched concurrently on a bounded thread pool. The first
failing fetch cancels the fetches that have not started, the pool is joined,
and a single CatalogError is raised.
"""

import logging
import posixpath
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from packaging.version import Version
from requests.exceptions import RequestException

from tvm.core.config import Settings
from tvm.core.exceptions import CatalogError, InvalidVersionError
from tvm.core.platform import PlatformInfo
from tvm.core.versioning import parse_version

logger = logging.getLogger(__name__)

LINK_SELECTOR = "body ul li a"
CHECKSUM_SUFFIX = "_SHA256SUMS"
SIGNATURE_SUFFIX = "_SHA256SUMS.sig"


@dataclass
class ReleaseCandidate:
    """A remotely published release for the current platform."""

    version: Version
    """Release version"""

    url: str
    """Archive download location"""

    checksum_url: Optional[str] = None
    """Checksum manifest location, if published"""

    checksum_signature_url: Optional[str] = None
    """Detached manifest signature location, if published"""

    @property
    def archive_name(self) -> str:
        """Base name of the archive, as listed in the checksum manifest."""
        return posixpath.basename(urlparse(self.url).path)


class CatalogScraper:
    """
    Discovers release candidates published in the remote catalog.

    Example:
        >>> scraper = CatalogScraper(settings)
        >>> for candidate in scraper.discover():
        ...     print(candidate.version, candidate.url)
    """

    def __init__(self, settings: Settings, platform: Optional[PlatformInfo] = None):
        """
        Initialize scraper.

        Args:
            settings: Settings providing the catalog URL, pool size and timeout
            platform: Platform to select archives for. If None, uses the
                platform named in settings.
        """
        self.settings = settings
        self.base_url = settings.base_url
        self.platform = platform or PlatformInfo(os=settings.os_name, arch=settings.arch)

    def fetch_page(self, url: str) -> BeautifulSoup:
        """
        Fetch and parse an HTML page.

        Args:
            url: Page URL

        Returns:
            Parsed document

        Raises:
            CatalogError: On transport failure or a non-success status
        """
        try:
            with requests.get(url, timeout=self.settings.timeout) as response:
                if not 200 <= response.status_code < 300:
                    raise CatalogError(
                        f"Error getting {url}: {response.status_code} {response.reason}"
                    )
                return BeautifulSoup(response.text, "html.parser")
        except RequestException as e:
            raise CatalogError(f"Failed to get {url}: {e}") from e

    def parse_index(self, document: BeautifulSoup) -> List[str]:
        """
        Extract detail page URLs from the catalog index.

        Only links nested under the catalog root on the same host are kept.

        Args:
            document: Parsed index page

        Returns:
            Detail page URLs in page order, without duplicates
        """
        base = urlparse(self.base_url)
        page_urls: List[str] = []

        for anchor in document.select(LINK_SELECTOR):
            href = anchor.get("href")
            if not href:
                continue

            url, _ = urldefrag(urljoin(self.base_url, href))
            parsed = urlparse(url)

            if parsed.netloc != base.netloc or parsed.path == base.path:
                continue
            if not parsed.path.startswith(base.path):
                continue

            if url not in page_urls:
                page_urls.append(url)

        return page_urls

    def list_release_pages(self) -> List[str]:
        """
        Fetch the catalog index and return its detail page URLs.

        Raises:
            CatalogError: If the index cannot be fetched
        """
        page_urls = self.parse_index(self.fetch_page(self.base_url))
        logger.debug(f"Found {len(page_urls)} release pages at {self.base_url}")
        return page_urls

    def parse_release_page(
        self, document: BeautifulSoup, page_url: str
    ) -> Optional[ReleaseCandidate]:
        """
        Classify the links of a detail page.

        Args:
            document: Parsed detail page
            page_url: URL the page was fetched from (for relative links)

        Returns:
            ReleaseCandidate, or None if the page has no archive for this platform
        """
        version = None
        archive_url = None
        checksum_url = None
        signature_url = None

        for anchor in document.select(LINK_SELECTOR):
            href = anchor.get("href")
            if not href:
                continue

            url = urljoin(page_url, href)

            if href.endswith(CHECKSUM_SUFFIX):
                checksum_url = url
                continue

            if href.endswith(SIGNATURE_SUFFIX):
                signature_url = url
                continue

            if not self.platform.matches(anchor.get("data-os"), anchor.get("data-arch")):
                continue

            raw_version = anchor.get("data-version")
            if raw_version is None:
                continue

            try:
                version = parse_version(raw_version)
            except InvalidVersionError:
                logger.debug(f"Ignoring link with bad version {raw_version!r} on {page_url}")
                continue

            archive_url = url

        if version is None:
            return None

        return ReleaseCandidate(
            version=version,
            url=archive_url,
            checksum_url=checksum_url,
            checksum_signature_url=signature_url,
        )

    def fetch_release(self, page_url: str) -> Optional[ReleaseCandidate]:
        """Fetch one detail page and parse it."""
        return self.parse_release_page(self.fetch_page(page_url), page_url)

    def discover(self) -> List[ReleaseCandidate]:
        """
        Discover every release published for the current platform.

        Returns:
            Candidates in no particular order; one per version

        Raises:
            CatalogError: If the index or any detail page cannot be fetched
        """
        page_urls = self.list_release_pages()
        if not page_urls:
            return []

        candidates: Dict[Version, ReleaseCandidate] = {}
        failures = []
        workers = min(self.settings.max_workers, len(page_urls))

        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="tvm-catalog"
        ) as executor:
            futures = {executor.submit(self.fetch_release, url): url for url in page_urls}
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)

            for future in pending:
                future.cancel()

            for future in done:
                error = future.exception()
                if error is not None:
                    failures.append((futures[future], error))
                    continue

                candidate = future.result()
                if candidate is not None:
                    candidates[candidate.version] = candidate

        if failures:
            page_url, error = failures[0]
            raise CatalogError(
                f"Failed to scrape {len(failures)} release page(s), "
                f"first failure at {page_url}: {error}"
            ) from error

        logger.debug(
            f"Discovered {len(candidates)} releases for {self.platform} "
            f"from {len(page_urls)} pages"
        )
        return list(candidates.values())


__all__ = ["ReleaseCandidate", "CatalogScraper", "CHECKSUM_SUFFIX", "SIGNATURE_SUFFIX"]
