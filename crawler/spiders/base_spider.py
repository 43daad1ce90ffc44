"""Base spider class for all novel crawlers."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from bs4 import BeautifulSoup

from converter import AozoraConverter
from crawler.exceptions import ExtractionError
from crawler.fetcher import PageFetcher
from crawler.items import ChapterItem, ChapterPage, NovelItem, PageType
from crawler.middlewares import RetryPolicy
from normalizer import ContentCleaner


class BaseSpider(ABC):
    """
    Base spider that all site-specific spiders must inherit from.

    Provides the discovery and fetch-with-retry flow and leaves the
    page structure to subclasses.
    """

    # Must be set by child spiders
    name: str = "base"
    allowed_domains: list = []

    def __init__(
        self,
        fetcher: PageFetcher,
        converter: Optional[AozoraConverter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        cleaner: Optional[ContentCleaner] = None,
    ):
        """
        Initialize spider with its collaborators.

        Args:
            fetcher: Single-request page fetcher
            converter: Used for the ruby pass on chapter text
            retry_policy: Retry policy for chapter fetches
            cleaner: Cleans structural HTML
        """
        self.fetcher = fetcher
        self.converter = converter or AozoraConverter()
        self.retry_policy = retry_policy or RetryPolicy.linear(3, 1.0)
        self.cleaner = cleaner or ContentCleaner()
        self.logger = logging.getLogger(f"crawler.spiders.{self.name}")

    def scrape(self, url: str) -> NovelItem:
        """
        Main entry point - parse the novel's main page.

        Serial works get their full chapter list (all index pages);
        standalone works get their body text directly.

        Args:
            url: Index URL of the work

        Returns:
            NovelItem with metadata and chapters in table-of-contents order
        """
        self.logger.info(f"Parsing novel main page: {url}")
        document = self.fetcher.fetch(url)

        item = NovelItem(page_type=self.detect_page_type(document), source_url=url)
        self.extract_novel_metadata(document, item)

        if item.page_type is PageType.SERIAL:
            chapters, index_pages = self.extract_chapter_list(document, url)
            item.chapters = chapters
            item.index_pages_html = index_pages
            self.logger.info(f"Found {len(chapters)} chapters for novel")
        else:
            page = self.parse_chapter(document, url)
            item.text_content.append(page.text)
            item.raw_html.append(page.structural_html)
            item.full_page_html = page.full_page_html

        return item

    def fetch_chapter(self, chapter: ChapterItem) -> ChapterPage:
        """
        Fetch and extract one chapter, retrying per the retry policy.

        The chapter's retry_count is updated in place with the number of
        failed attempts.

        Raises:
            RetryExhaustedError: every attempt failed
        """
        attempts = 0

        def attempt() -> ChapterPage:
            nonlocal attempts
            attempts += 1
            document = self.fetcher.fetch(chapter.url)
            return self.parse_chapter(document, chapter.url)

        def record_failure(attempt_number: int, error: Exception) -> None:
            chapter.retry_count = attempt_number

        page = self.retry_policy.run(
            attempt,
            f"chapter fetch {chapter.url}",
            on_failure=record_failure,
        )
        page.attempts = attempts
        return page

    @abstractmethod
    def detect_page_type(self, document: BeautifulSoup) -> PageType:
        """
        Decide whether the page is a serial index or a standalone work.

        Raises:
            ExtractionError: neither layout was recognized
        """

    @abstractmethod
    def extract_novel_metadata(self, document: BeautifulSoup, item: NovelItem) -> None:
        """
        Extract novel-level metadata from main page.

        Must populate:
        - item.title
        - item.author
        """

    @abstractmethod
    def extract_chapter_list(
        self,
        document: BeautifulSoup,
        base_url: str,
    ) -> tuple[list[ChapterItem], list[str]]:
        """
        Walk the paginated chapter list starting from document.

        Returns:
            (chapters in discovery order, HTML of every index page visited)
        """

    @abstractmethod
    def parse_chapter(self, document: BeautifulSoup, url: str) -> ChapterPage:
        """
        Extract chapter content from a fetched page.

        Raises:
            ExtractionError: the body is missing or empty
        """

    def require(self, document: BeautifulSoup, selector: str, what: str):
        """Select one element or raise ExtractionError."""
        element = document.select_one(selector)
        if element is None:
            raise ExtractionError(f"{what} not found ({selector})")
        return element
