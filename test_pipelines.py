"""Tests for the page fetcher and the file pipelines."""
import pytest
import requests

from crawler.exceptions import FetchError, PersistenceError
from crawler.fetcher import PageFetcher, is_age_gated, site_base_url
from crawler.middlewares import RetryPolicy
from crawler.pipelines import HtmlFilePipeline, TextFilePipeline
from schemas import LineEnding, TextEncoding


class FakeResponse:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def get(self, url, headers=None, cookies=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "cookies": cookies, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def no_retry():
    return RetryPolicy.fixed(3, 0.0, sleep=lambda s: None)


class TestPageFetcher:
    def test_parses_document(self):
        session = FakeSession(FakeResponse("<html><h1>題名</h1></html>".encode("utf-8")))
        fetcher = PageFetcher(timeout=5, session=session)

        document = fetcher.fetch("https://ncode.syosetu.com/n1234ab/")

        assert document.select_one("h1").get_text() == "題名"
        request = session.requests[0]
        assert request["timeout"] == 5
        assert request["cookies"] is None
        assert "Chrome" in request["headers"]["User-Agent"]

    def test_sends_age_gate_cookie_to_novel18(self):
        session = FakeSession(FakeResponse(b"<html></html>"))

        PageFetcher(session=session).fetch("https://novel18.syosetu.com/n9999zz/")

        assert session.requests[0]["cookies"] == {"over18": "yes"}

    def test_error_status_is_fetch_error(self):
        session = FakeSession(FakeResponse(b"", status_code=503))

        with pytest.raises(FetchError) as exc_info:
            PageFetcher(session=session).fetch("https://ncode.syosetu.com/n1234ab/")

        assert exc_info.value.url == "https://ncode.syosetu.com/n1234ab/"

    def test_transport_error_is_fetch_error(self):
        session = FakeSession(error=requests.ConnectionError("refused"))

        with pytest.raises(FetchError):
            PageFetcher(session=session).fetch("https://ncode.syosetu.com/n1234ab/")

    def test_context_manager_closes_session(self):
        session = FakeSession()

        with PageFetcher(session=session):
            pass

        assert session.closed


def test_site_helpers():
    assert is_age_gated("https://novel18.syosetu.com/n1/")
    assert not is_age_gated("https://ncode.syosetu.com/n1/")
    assert site_base_url("https://novel18.syosetu.com/n1/") == "https://novel18.syosetu.com"
    assert site_base_url("https://ncode.syosetu.com/n1/") == "https://ncode.syosetu.com"


class TestTextFilePipeline:
    def test_writes_crlf_utf8(self, tmp_path):
        pipeline = TextFilePipeline(tmp_path, retry_policy=no_retry())

        path = pipeline.write("N1234AB-1", "題名\n\n本文\n")

        assert path == tmp_path / "N1234AB-1.txt"
        assert path.read_bytes() == "題名\r\n\r\n本文\r\n".encode("utf-8")
        assert pipeline.exists("N1234AB-1")

    def test_writes_lf(self, tmp_path):
        pipeline = TextFilePipeline(tmp_path, line_ending=LineEnding.LF, retry_policy=no_retry())

        path = pipeline.write("a", "一\n二\n")

        assert path.read_bytes() == "一\n二\n".encode("utf-8")

    @pytest.mark.parametrize("encoding, codec", [
        (TextEncoding.UTF16LE, "utf-16-le"),
        (TextEncoding.SHIFT_JIS, "shift_jis"),
    ])
    def test_encodings(self, tmp_path, encoding, codec):
        pipeline = TextFilePipeline(
            tmp_path, encoding=encoding, line_ending=LineEnding.LF, retry_policy=no_retry()
        )

        path = pipeline.write("a", "日本語の本文\n")

        assert path.read_bytes() == "日本語の本文\n".encode(codec)

    def test_unencodable_text_fails_without_retrying(self, tmp_path):
        sleeps = []
        pipeline = TextFilePipeline(
            tmp_path,
            encoding=TextEncoding.SHIFT_JIS,
            retry_policy=RetryPolicy.fixed(3, 2.0, sleep=sleeps.append),
        )

        with pytest.raises(PersistenceError, match="Shift-JIS"):
            pipeline.write("a", "絵文字😀")

        assert sleeps == []
        assert not pipeline.exists("a")

    def test_file_names_are_sanitized(self, tmp_path):
        pipeline = TextFilePipeline(tmp_path, retry_policy=no_retry())

        assert pipeline.path_for("a/b:c") == tmp_path / "a_b_c.txt"

    def test_write_retries_until_success(self, tmp_path, monkeypatch):
        sleeps = []
        pipeline = TextFilePipeline(tmp_path, retry_policy=RetryPolicy.fixed(3, 2.0, sleep=sleeps.append))
        original = TextFilePipeline.write_once
        calls = []

        def flaky_write_once(self, path, data):
            calls.append(path.name)
            if len(calls) < 3:
                raise PersistenceError("disk busy")
            return original(self, path, data)

        monkeypatch.setattr(TextFilePipeline, "write_once", flaky_write_once)

        path = pipeline.write("a", "本文")

        assert path.exists()
        assert len(calls) == 3
        assert sleeps == [2.0, 2.0]


def test_html_pipeline_writes_under_html_dir(tmp_path):
    pipeline = HtmlFilePipeline(tmp_path, retry_policy=no_retry())

    path = pipeline.write("3", "<p>本文</p>")

    assert path == tmp_path / "html" / "3.html"
    assert path.read_text(encoding="utf-8") == "<p>本文</p>"
    assert pipeline.exists("3")
    assert not pipeline.exists("4")
