"""Tests for the command line interface."""
import sys

import pytest

import cli
from conftest import INDEX_URL, FakeFetcher, chapter_page, chapter_url, index_page
from orchestrator import Downloader


@pytest.fixture
def fake_downloader(monkeypatch, test_settings):
    pages = {
        INDEX_URL: index_page([("/n1234ab/1/", "第一話"), ("/n1234ab/2/", "第二話")]),
        chapter_url(1): chapter_page("<p>本文1</p>"),
        chapter_url(2): chapter_page("<p>本文2</p>"),
    }
    monkeypatch.setattr(
        cli,
        "build_downloader",
        lambda: Downloader(test_settings, fetcher=FakeFetcher(pages), sleep=lambda s: None),
    )


def run(argv):
    args = cli.build_parser().parse_args(argv)
    args.func(args)


def test_convert(tmp_path, capsys):
    source = tmp_path / "chapter.html"
    source.write_text("<p><b>太字</b>と<ruby>漢字<rt>かんじ</rt></ruby></p>", encoding="utf-8")

    run(["convert", str(source)])

    assert capsys.readouterr().out == "［＃太字］太字［＃太字終わり］と｜漢字《かんじ》\n"


def test_convert_strip_decoration(tmp_path, capsys):
    source = tmp_path / "chapter.html"
    source.write_text("<p><b>太字</b></p>", encoding="utf-8")

    run(["convert", "--strip-decoration", str(source)])

    assert capsys.readouterr().out == "太字\n"


def test_convert_rejects_bad_pattern(tmp_path, capsys):
    source = tmp_path / "chapter.html"
    source.write_text("<p></p>", encoding="utf-8")

    with pytest.raises(SystemExit):
        run(["convert", "--illust-pattern", "(", str(source)])

    assert "invalid conversion settings" in capsys.readouterr().out


def test_title(fake_downloader, capsys):
    run(["title", chapter_url(2)])

    assert capsys.readouterr().out.strip() == "テスト小説"


def test_chapters(fake_downloader, capsys):
    run(["chapters", INDEX_URL])

    out = capsys.readouterr().out
    assert "テスト小説 / 山田 (serial)" in out
    assert chapter_url(2) in out


def test_download(fake_downloader, tmp_path, capsys):
    run(["download", INDEX_URL, "-o", str(tmp_path), "--line-ending", "LF"])

    out = capsys.readouterr().out
    assert "fetched 2, skipped 0, failed 0" in out
    assert (tmp_path / "N1234AB-2.txt").read_text(encoding="utf-8") == "第二話\n\n本文2\n"
    assert (tmp_path / "all.txt").exists()


def test_download_unsupported_url(capsys):
    with pytest.raises(SystemExit):
        run(["download", "https://example.com/novel/"])

    assert "not supported" in capsys.readouterr().out


def test_main_without_command_prints_help(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["narou-archiver"])

    with pytest.raises(SystemExit):
        cli.main()
