"""Single-request page fetching."""
import logging
from typing import Optional

import requests
from bs4 import BeautifulSoup

from crawler import settings as crawler_settings
from crawler.exceptions import FetchError

logger = logging.getLogger(__name__)


def is_age_gated(url: str) -> bool:
    """Check if URL belongs to the age-gated domain."""
    return crawler_settings.AGE_GATED_DOMAIN in url


def site_base_url(url: str) -> str:
    """Pick the host prefix for root-relative links found under url."""
    if is_age_gated(url):
        return crawler_settings.NOVEL18_BASE_URL
    return crawler_settings.NCODE_BASE_URL


class PageFetcher:
    """
    Fetch one page and parse it into a BeautifulSoup document.

    Never retries; callers decide how often to try again.
    """

    def __init__(
        self,
        timeout: float = crawler_settings.DOWNLOAD_TIMEOUT,
        session: Optional[requests.Session] = None,
        headers: Optional[dict] = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = dict(headers or crawler_settings.DEFAULT_REQUEST_HEADERS)

    def fetch(self, url: str) -> BeautifulSoup:
        """
        GET url and parse the body.

        Args:
            url: Absolute page URL

        Returns:
            Parsed document

        Raises:
            FetchError: on transport errors, error statuses or parse failures
        """
        cookies = crawler_settings.AGE_GATE_COOKIES if is_age_gated(url) else None
        logger.debug(f"GET {url}")

        try:
            response = self.session.get(
                url,
                headers=self.headers,
                cookies=cookies,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        try:
            return BeautifulSoup(response.content, 'lxml')
        except Exception as e:
            raise FetchError(url, f"could not parse response: {e}") from e

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
