from bs4 import BeautifulSoup

from crawler import settings as crawler_settings
from crawler.exceptions import ExtractionError, NoChaptersFoundError
from crawler.fetcher import site_base_url
from crawler.items import ChapterItem, ChapterPage, NovelItem, PageType
from crawler.spiders.base_spider import BaseSpider
from normalizer import absolutize_links, delete_tag, restore_html_entity


class NarouSpider(BaseSpider):
    """
    Spider for Shousetsuka ni Narou (小説家になろう) and its
    age-gated sibling Nocturne (novel18).

    Site URL: https://ncode.syosetu.com/
    """

    name = "narou"
    allowed_domains = ["ncode.syosetu.com", "novel18.syosetu.com"]

    def detect_page_type(self, document: BeautifulSoup) -> PageType:
        """Episode list means serial; a bare novel body means standalone."""
        for selector in crawler_settings.EPISODE_LIST_SELECTORS:
            if document.select_one(selector) is not None:
                return PageType.SERIAL
        if document.select_one(crawler_settings.NOVEL_BODY_SELECTOR) is not None:
            return PageType.STANDALONE
        raise ExtractionError("Unknown page type: no episode list and no novel body")

    def extract_novel_metadata(self, document: BeautifulSoup, item: NovelItem) -> None:
        """Extract title and author from the narou page header."""
        title = document.select_one(crawler_settings.TITLE_SELECTOR)
        item.title = title.get_text().strip() if title else ""

        author = document.select_one(crawler_settings.AUTHOR_LINK_SELECTOR)
        if author is None:
            author = document.select_one(crawler_settings.AUTHOR_SELECTOR)
        author_name = author.get_text().strip() if author else ""

        if not author_name:
            self.logger.warning("Author not found, using placeholder")
            author_name = crawler_settings.UNKNOWN_AUTHOR
        item.author = author_name

        self.logger.info(f"Extracted novel: {item.title} / {item.author}")

    def extract_chapter_list(
        self,
        document: BeautifulSoup,
        base_url: str,
    ) -> tuple[list[ChapterItem], list[str]]:
        """Follow the "next" pager link across every index page."""
        chapters = []
        index_pages = [self.full_page_html(document, base_url)]
        page = document
        visited = {base_url}

        while True:
            for link in page.select(crawler_settings.EPISODE_LINK_SELECTOR):
                href = link.get('href')
                if not href:
                    continue
                chapters.append(ChapterItem(
                    title=link.get_text().strip(),
                    url=self.chapter_url(href, base_url),
                ))

            next_link = page.select_one(crawler_settings.NEXT_PAGE_SELECTOR)
            next_href = next_link.get('href') if next_link is not None else None
            if not next_href:
                break

            next_url = self.next_page_url(next_href, base_url)
            if next_url in visited:
                self.logger.warning(f"Chapter list pager loops back to {next_url}")
                break
            visited.add(next_url)
            self.logger.info(f"Following chapter list page: {next_url}")

            # A failed index page ends discovery with an error
            page = self.fetcher.fetch(next_url)
            index_pages.append(self.full_page_html(page, next_url))

        if not chapters:
            raise NoChaptersFoundError(f"No chapters listed at {base_url}")

        return chapters, index_pages

    def parse_chapter(self, document: BeautifulSoup, url: str) -> ChapterPage:
        """Extract text sections of the novel body, ruby converted."""
        body = self.require(document, crawler_settings.NOVEL_BODY_SELECTOR, "Novel body")

        parts = []
        for section in document.select(crawler_settings.NOVEL_TEXT_SELECTOR):
            text = self.converter.ruby_to_aozora(section.decode_contents())
            text = restore_html_entity(delete_tag(text)).strip()
            if text:
                parts.append(text)

        if not parts:
            raise ExtractionError(f"Novel text is empty: {url}")

        self.logger.debug(f"Extracted {len(parts)} text sections from {url}")

        return ChapterPage(
            text=crawler_settings.SECTION_SEPARATOR.join(parts),
            structural_html=self.cleaner.clean_html(body.decode_contents()),
            full_page_html=self.full_page_html(document, url),
        )

    def full_page_html(self, document: BeautifulSoup, url: str) -> str:
        html = str(self.cleaner.remove_iframes(document))
        return absolutize_links(html, site_base_url(url))

    def chapter_url(self, href: str, base_url: str) -> str:
        if href.startswith('http'):
            return href
        if href.startswith('/'):
            return site_base_url(base_url) + href
        return base_url.rstrip('/') + '/' + href

    def next_page_url(self, href: str, base_url: str) -> str:
        if href.startswith('http'):
            return href
        if href.startswith('/'):
            return site_base_url(base_url) + href
        # Same-page paths such as "?p=2"
        return base_url + href
