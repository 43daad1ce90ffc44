"""Download orchestration: spider selection, chapter iteration and assembly."""
import logging
import re
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

from config import Settings
from converter import AozoraConverter, ConversionConfig
from crawler.exceptions import (
    ArchiverError,
    DownloadAbortedError,
    ExtractionError,
    PersistenceError,
    RetryExhaustedError,
    UnsupportedSourceError,
)
from crawler.fetcher import PageFetcher
from crawler.items import ChapterItem, ChapterStatus, NovelItem, PageType
from crawler.middlewares import RetryPolicy
from crawler.pipelines import HtmlFilePipeline, TextFilePipeline
from crawler.spiders.base_spider import BaseSpider
from crawler.spiders.narou import NarouSpider
from normalizer import SlugGenerator
from progress import ProgressReporter
from schemas import DownloadOptions, DownloadSummary

logger = logging.getLogger(__name__)


WORK_CODE_PATTERN = re.compile(r'/n([0-9]+[a-z]+)/')
WORK_CODE_SEGMENT = re.compile(r'n[a-z0-9]+')
EPISODE_PATTERN = re.compile(r'/n[0-9]+[a-z]+/([0-9]+)/?')
EPISODE_URL_PATTERN = re.compile(
    r'^(https://(?:ncode|novel18)\.syosetu\.com/n[0-9]+[a-z]+)/([0-9]+)/?$'
)

COMBINED_FILE_NAME = "all"
COMBINED_SEPARATOR = "\n\n----------------\n\n\n"


def extract_work_code(url: str) -> str:
    """
    Work code from a narou URL, upper-cased.

    "https://ncode.syosetu.com/n3161kd/1/" -> "N3161KD"
    """
    match = WORK_CODE_PATTERN.search(url)
    if match:
        return "N" + match.group(1).upper()

    for part in url.split('/'):
        if WORK_CODE_SEGMENT.fullmatch(part):
            return part.upper()

    return "UNKNOWN"


def extract_episode_number(url: str) -> str:
    """
    Episode number from a narou chapter URL.

    Returns "1" when the URL has none.
    """
    match = EPISODE_PATTERN.search(url)
    if match:
        return match.group(1)

    parts = url.split('/')
    for i, part in enumerate(parts[:-1]):
        if part.startswith('n') and len(part) > 1:
            following = parts[i + 1]
            if re.fullmatch(r'[0-9]+', following):
                return following

    return "1"


def resolve_episode_number(url: str, index: int) -> str:
    """
    Episode number for the chapter at position index of the TOC.

    Falls back to the 1-based position when the URL yields nothing, or
    yields "1" for a chapter that is not the first one.
    """
    episode_number = extract_episode_number(url)
    if not episode_number or (index > 0 and episode_number == "1"):
        episode_number = str(index + 1)
    return episode_number


def generate_file_name(work_code: str, episode_number: str) -> str:
    return f"{work_code}-{episode_number}"


def to_index_url(url: str) -> str:
    """Map an episode URL to the index URL of its work."""
    match = EPISODE_URL_PATTERN.match(url)
    if match:
        return match.group(1) + "/"
    return url


def _format_body(content: str) -> str:
    # Whitespace-only lines become empty lines
    return "".join(
        (line if line.strip() else "") + "\n"
        for line in content.split("\n")
    )


def format_chapter_content(
    converter: AozoraConverter,
    novel_title: str,
    chapter_title: str,
    content: str,
) -> str:
    """
    Format one chapter file: heading, blank line, body.

    Standalone works have no chapter title and use the novel title.
    """
    heading = converter.ruby_to_aozora(chapter_title or novel_title)
    return heading + "\n\n" + _format_body(content)


def format_chapter_for_combined(
    converter: AozoraConverter,
    chapter_title: str,
    content: str,
) -> str:
    return converter.ruby_to_aozora(chapter_title) + "\n\n" + _format_body(content)


class SpiderRegistry:
    """
    Registry mapping domains to spider names.

    Used to select the appropriate spider for a given URL.
    """

    DOMAIN_SPIDER_MAP = {
        'ncode.syosetu.com': 'narou',
        'novel18.syosetu.com': 'narou',
    }

    SPIDERS = {
        'narou': NarouSpider,
    }

    @classmethod
    def get_spider_for_url(cls, url: str) -> Optional[str]:
        """
        Determine which spider to use for a given URL.

        Args:
            url: The source URL

        Returns:
            Spider name or None if no spider found
        """
        domain = urlparse(url).netloc.lower()
        spider_name = cls.DOMAIN_SPIDER_MAP.get(domain)

        if not spider_name:
            logger.warning(f"No spider registered for domain: {domain}")

        return spider_name

    @classmethod
    def is_supported(cls, url: str) -> bool:
        """Check if URL is supported."""
        return cls.get_spider_for_url(url) is not None


class Downloader:
    """
    Download a work chapter by chapter and write archival text files.

    Chapters are processed strictly one after another with a pause
    between fetches. Chapters whose files already exist are skipped, so
    an interrupted download can simply be run again.
    """

    def __init__(
        self,
        config: Settings,
        reporter: Optional[ProgressReporter] = None,
        fetcher: Optional[PageFetcher] = None,
        converter: Optional[AozoraConverter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.reporter = reporter or ProgressReporter()
        self.fetcher = fetcher or PageFetcher(timeout=config.request_timeout)
        self.converter = converter or AozoraConverter(
            ConversionConfig(strip_decoration_tags=config.strip_decoration_tags)
        )
        self.sleep = sleep

    def close(self) -> None:
        self.fetcher.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def build_spider(self, url: str) -> BaseSpider:
        spider_name = SpiderRegistry.get_spider_for_url(url)
        if not spider_name:
            raise UnsupportedSourceError(f"URL not supported (no spider for this domain): {url}")

        spider_cls = SpiderRegistry.SPIDERS[spider_name]
        return spider_cls(
            fetcher=self.fetcher,
            converter=self.converter,
            retry_policy=RetryPolicy.from_settings(self.config, "fetch", sleep=self.sleep),
        )

    def discover(self, url: str) -> tuple[BaseSpider, NovelItem]:
        """Fetch the index page (and every chapter list page) of a work."""
        spider = self.build_spider(url)
        try:
            item = spider.scrape(url)
        except ArchiverError as e:
            self.reporter.log(f"Scraping error: {e}", level=logging.ERROR)
            raise
        return spider, item

    def get_title(self, url: str) -> str:
        """Title of the work behind url (episode URLs are accepted)."""
        _, item = self.discover(to_index_url(url))
        return item.title

    def download(
        self,
        url: str,
        output_dir: Optional[str] = None,
        options: Optional[DownloadOptions] = None,
    ) -> DownloadSummary:
        """
        Download the work at url.

        Args:
            url: Index URL or any episode URL of the work
            output_dir: Directory for the files; defaults to a directory
                named after the title under the configured output root
            options: Which artifacts to write and how

        Returns:
            DownloadSummary of the run

        Raises:
            ArchiverError: discovery failed, too many chapters failed in a
                row, or the combined file could not be written
        """
        options = options or DownloadOptions()

        self.reporter.progress(0)
        self.reporter.log("Fetching index page...")

        index_url = to_index_url(url)
        if index_url != url:
            self.reporter.log(f"Episode URL detected, downloading the whole work: {index_url}")

        spider, item = self.discover(index_url)
        save_path = self.setup_save_path(output_dir, item.title)

        text_pipeline = TextFilePipeline(
            save_path,
            encoding=options.text_encoding,
            line_ending=options.line_ending,
            retry_policy=RetryPolicy.from_settings(self.config, "save", sleep=self.sleep),
        )
        html_pipeline = HtmlFilePipeline(
            save_path,
            retry_policy=RetryPolicy.from_settings(self.config, "save", sleep=self.sleep),
        )

        if item.page_type is PageType.SERIAL:
            return self.download_serial(spider, item, save_path, options, text_pipeline, html_pipeline)
        return self.download_standalone(item, url, save_path, options, text_pipeline, html_pipeline)

    def setup_save_path(self, output_dir: Optional[str], title: str) -> Path:
        if output_dir:
            save_path = Path(output_dir)
        else:
            root = Path(self.config.output_dir) if self.config.output_dir else Path.cwd()
            save_path = root / SlugGenerator.generate_slug(title)

        try:
            save_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.reporter.log(f"Failed to create save directory: {e}", level=logging.ERROR)
            raise PersistenceError(f"Failed to create save directory {save_path}: {e}") from e

        self.reporter.log(f"Saving to: {save_path}")
        return save_path

    def should_skip(
        self,
        file_name: str,
        episode_number: str,
        options: DownloadOptions,
        text_pipeline: TextFilePipeline,
        html_pipeline: HtmlFilePipeline,
    ) -> bool:
        """True when every per-chapter artifact requested already exists."""
        if not options.emit_text and not options.emit_structural:
            return False
        text_done = not options.emit_text or text_pipeline.exists(file_name)
        html_done = not options.emit_structural or html_pipeline.exists(episode_number)
        return text_done and html_done

    def download_serial(
        self,
        spider: BaseSpider,
        item: NovelItem,
        save_path: Path,
        options: DownloadOptions,
        text_pipeline: TextFilePipeline,
        html_pipeline: HtmlFilePipeline,
    ) -> DownloadSummary:
        total = len(item.chapters)
        if total == 0:
            raise ExtractionError("No episodes found")

        summary = DownloadSummary(
            title=item.title,
            author=item.author,
            page_type=item.page_type,
            save_path=str(save_path),
            total=total,
        )
        max_failures = self.config.max_consecutive_failures
        work_code = extract_work_code(item.chapters[0].url)
        combined_parts = []
        failures = 0

        self.reporter.log(f"Found {total} episodes. Starting download...")
        self.reporter.progress_text(f"0/{total}")

        for i, chapter in enumerate(item.chapters):
            self.reporter.progress(int(i / total * 80))
            self.reporter.progress_text(f"{i}/{total}")

            episode_number = resolve_episode_number(chapter.url, i)
            file_name = generate_file_name(work_code, episode_number)

            if self.should_skip(file_name, episode_number, options, text_pipeline, html_pipeline):
                chapter.status = ChapterStatus.SKIPPED
                summary.skipped += 1
                self.reporter.log(f"Episode {i + 1}: {chapter.title} is already saved, skipping")
                continue

            self.reporter.log(f"Episode {i + 1}: fetching {chapter.title}...")

            try:
                page = spider.fetch_chapter(chapter)
            except ArchiverError as e:
                failures += 1
                chapter.failed = True
                chapter.status = ChapterStatus.FAILED
                summary.failed += 1
                self.reporter.log(
                    f"Episode {i + 1} failed: {e} (failures: {failures}/{max_failures})",
                    level=logging.WARNING,
                )
                if failures >= max_failures:
                    cause = e.last_error if isinstance(e, RetryExhaustedError) and e.last_error else e
                    raise DownloadAbortedError(failures, cause) from e
                continue

            failures = 0
            chapter.content = page.text
            chapter.raw_html = page.structural_html
            chapter.full_page_html = page.full_page_html
            chapter.status = ChapterStatus.FETCHED
            summary.fetched += 1

            combined_parts.append(format_chapter_for_combined(self.converter, chapter.title, page.text))

            # Rate limit between chapters, not after the last one
            if i < total - 1:
                self.reporter.log(
                    f"Episode {i + 1} fetched. Waiting {self.config.chapter_interval:g} seconds..."
                )
                self.sleep(self.config.chapter_interval)

            self.save_chapter(item, chapter, i, file_name, episode_number, options, text_pipeline, html_pipeline)

        if options.emit_combined and combined_parts:
            summary.combined_path = str(self.save_combined(item, combined_parts, text_pipeline))

        self.reporter.progress(100)
        self.reporter.progress_text(f"Done ({total}/{total})")
        self.reporter.log("Download complete")
        return summary

    def save_chapter(
        self,
        item: NovelItem,
        chapter: ChapterItem,
        index: int,
        file_name: str,
        episode_number: str,
        options: DownloadOptions,
        text_pipeline: TextFilePipeline,
        html_pipeline: HtmlFilePipeline,
    ) -> None:
        """Write the chapter's files; failures are reported, not raised."""
        saved = True

        if options.emit_text:
            formatted = format_chapter_content(self.converter, item.title, chapter.title, chapter.content)
            try:
                text_pipeline.write(file_name, formatted)
            except ArchiverError as e:
                saved = False
                self.reporter.log(f"Episode {index + 1} could not be saved: {e}", level=logging.WARNING)

        if options.emit_structural:
            try:
                html_pipeline.write(episode_number, chapter.raw_html or "")
            except ArchiverError as e:
                saved = False
                self.reporter.log(f"Episode {index + 1} HTML could not be saved: {e}", level=logging.WARNING)

        if saved:
            chapter.status = ChapterStatus.SAVED

    def build_combined(self, item: NovelItem, chapter_parts: list[str]) -> str:
        """Title, author, then every chapter separated by a dotted rule."""
        header = (
            self.converter.ruby_to_aozora(item.title) + "\n"
            + self.converter.ruby_to_aozora(item.author) + "\n\n\n"
        )
        return header + COMBINED_SEPARATOR.join(chapter_parts)

    def save_combined(
        self,
        item: NovelItem,
        chapter_parts: list[str],
        text_pipeline: TextFilePipeline,
    ) -> Path:
        self.reporter.progress(90)
        self.reporter.progress_text("Building combined file")
        self.reporter.log("Building combined file...")

        try:
            return text_pipeline.write(COMBINED_FILE_NAME, self.build_combined(item, chapter_parts))
        except ArchiverError as e:
            self.reporter.log(f"Failed to save combined text file: {e}", level=logging.ERROR)
            raise PersistenceError(f"Failed to save combined text file: {e}") from e

    def download_standalone(
        self,
        item: NovelItem,
        original_url: str,
        save_path: Path,
        options: DownloadOptions,
        text_pipeline: TextFilePipeline,
        html_pipeline: HtmlFilePipeline,
    ) -> DownloadSummary:
        self.reporter.progress_text("Processing standalone work")

        summary = DownloadSummary(
            title=item.title,
            author=item.author,
            page_type=item.page_type,
            save_path=str(save_path),
            total=1,
        )
        # Standalone works are always episode 1
        file_name = generate_file_name(extract_work_code(original_url), "1")

        if self.should_skip(file_name, "1", options, text_pipeline, html_pipeline):
            summary.skipped = 1
            self.reporter.log("Standalone work is already saved, skipping")
            self.reporter.progress(100)
            self.reporter.progress_text("Done (skipped)")
            return summary

        content = "\n".join(item.text_content)
        if not content:
            self.reporter.log("Could not get the novel text", level=logging.ERROR)
            raise ExtractionError("Could not get the novel text")

        try:
            if options.emit_text:
                formatted = format_chapter_content(self.converter, item.title, "", content)
                text_pipeline.write(file_name, formatted)
            if options.emit_structural:
                html_pipeline.write("1", item.raw_html[0] if item.raw_html else "")
        except ArchiverError as e:
            self.reporter.log(f"Failed to save {file_name}: {e}", level=logging.ERROR)
            raise PersistenceError(f"Failed to save {file_name}: {e}") from e

        summary.fetched = 1
        self.reporter.progress(100)
        self.reporter.progress_text("Done")
        self.reporter.log("Files saved")
        return summary
