"""Shared fixtures: canned narou pages and an in-memory fetcher."""
import pytest
from bs4 import BeautifulSoup

from config import Settings
from crawler.exceptions import FetchError


INDEX_URL = "https://ncode.syosetu.com/n1234ab/"
INDEX_PAGE_2_URL = "https://ncode.syosetu.com/n1234ab/?p=2"


def chapter_url(number: int) -> str:
    return f"https://ncode.syosetu.com/n1234ab/{number}/"


def index_page(links, next_href=None, title="テスト小説", author='<a href="/u/1">山田</a>'):
    items = "\n".join(
        f'<div class="p-eplist__sublist"><a href="{href}" class="p-eplist__subtitle">{text}</a></div>'
        for href, text in links
    )
    author_block = f'<div class="p-novel__author">作者：{author}</div>' if author is not None else ""
    pager = ""
    if next_href is not None:
        pager = f'<div class="c-pager"><a href="{next_href}" class="c-pager__item c-pager__item--next">次へ</a></div>'
    return f"""<html><head><link rel="stylesheet" href="/css/site.css"></head><body>
<h1 class="p-novel__title">{title}</h1>
{author_block}
<div class="p-eplist">
{items}
</div>
{pager}
</body></html>"""


def chapter_page(*sections):
    texts = "\n".join(
        f'<div class="p-novel__text">{section}</div>' for section in sections
    )
    return f"""<html><body>
<h1 class="p-novel__title">話</h1>
<div class="p-novel__body">
{texts}
<iframe src="https://ads.example.com/"></iframe>
</div>
</body></html>"""


class FakeFetcher:
    """Serves canned HTML by URL; unknown URLs fail like a 404."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []
        self.closed = False

    def fetch(self, url):
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "404 Client Error: Not Found")
        if isinstance(page, Exception):
            raise page
        return BeautifulSoup(page, "lxml")

    def close(self):
        self.closed = True


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        chapter_interval=10.0,
        fetch_max_attempts=3,
        fetch_retry_delay=1.0,
        save_max_attempts=3,
        save_retry_delay=2.0,
        max_consecutive_failures=3,
        output_dir=str(tmp_path),
    )


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of waiting."""
    return []
