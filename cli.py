"""
CLI utility for archiving narou novels as Aozora style text.

Usage:
    python cli.py download <url>              # Download a work
    python cli.py chapters <url>              # List the chapters of a work
    python cli.py title <url>                 # Print the title of a work
    python cli.py convert <file>              # Convert an HTML file to text
"""
import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from config import settings
from converter import AozoraConverter, ConversionConfig
from crawler.exceptions import ArchiverError
from orchestrator import Downloader, SpiderRegistry, to_index_url
from schemas import DownloadOptions, LineEnding, TextEncoding


def build_downloader() -> Downloader:
    return Downloader(settings)


def cmd_download(args):
    """Download a work into text files."""
    url = args.url

    if not SpiderRegistry.is_supported(url):
        print("Error: URL not supported (no spider for this domain)")
        sys.exit(1)

    options = DownloadOptions(
        text_encoding=TextEncoding(args.encoding),
        line_ending=LineEnding(args.line_ending),
        emit_structural=args.html,
        emit_text=not args.no_txt,
        emit_combined=not args.no_combined,
    )

    with build_downloader() as downloader:
        try:
            summary = downloader.download(url, args.output, options)
        except ArchiverError as e:
            print(f"✗ Download failed: {e}")
            sys.exit(1)

    print(f"✓ {summary.title} ({summary.author})")
    print(f"  Saved to: {summary.save_path}")
    print(
        f"  Episodes: {summary.total} "
        f"(fetched {summary.fetched}, skipped {summary.skipped}, failed {summary.failed})"
    )
    if summary.combined_path:
        print(f"  Combined file: {summary.combined_path}")


def cmd_chapters(args):
    """List the chapters of a work."""
    with build_downloader() as downloader:
        try:
            _, item = downloader.discover(to_index_url(args.url))
        except ArchiverError as e:
            print(f"Error: {e}")
            sys.exit(1)

    print(f"{item.title} / {item.author} ({item.page_type.value})")
    print("-" * 60)
    if not item.chapters:
        print("Standalone work, no chapter list")
        return
    for i, chapter in enumerate(item.chapters, start=1):
        print(f"{i:4d}  {chapter.title}")
        print(f"      {chapter.url}")


def cmd_title(args):
    """Print the title of a work."""
    with build_downloader() as downloader:
        try:
            print(downloader.get_title(args.url))
        except ArchiverError as e:
            print(f"Error: {e}")
            sys.exit(1)


def cmd_convert(args):
    """Convert a local HTML fragment to Aozora style text."""
    try:
        config = ConversionConfig(
            strip_decoration_tags=args.strip_decoration or settings.strip_decoration_tags,
            illustration_base_url=args.illust_base or "",
            illustration_pattern=args.illust_pattern or "",
            omit_redundant_ruby_bar=args.omit_ruby_bar,
        )
    except ValidationError as e:
        print(f"Error: invalid conversion settings: {e}")
        sys.exit(1)

    source = Path(args.file).read_text(encoding="utf-8")
    sys.stdout.write(AozoraConverter(config).to_aozora(source, pre_html=args.pre_html))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Narou novel archiver CLI"
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Download command
    download_parser = subparsers.add_parser('download', help='Download a work')
    download_parser.add_argument('url', help='Index or episode URL of the work')
    download_parser.add_argument('-o', '--output', default=settings.output_dir, help='Output directory')
    download_parser.add_argument(
        '--encoding',
        choices=[e.value for e in TextEncoding],
        default=settings.text_encoding,
        help='Text file encoding',
    )
    download_parser.add_argument(
        '--line-ending',
        choices=[e.value for e in LineEnding],
        default=settings.line_ending,
        help='Text file line ending',
    )
    download_parser.add_argument(
        '--html', action='store_true', default=settings.emit_structural,
        help='Also save the cleaned chapter HTML',
    )
    download_parser.add_argument(
        '--no-txt', action='store_true', default=not settings.emit_text,
        help='Do not save per-chapter text files',
    )
    download_parser.add_argument(
        '--no-combined', action='store_true', default=not settings.emit_combined,
        help='Do not build the combined text file',
    )
    download_parser.set_defaults(func=cmd_download)

    # Chapters command
    chapters_parser = subparsers.add_parser('chapters', help='List the chapters of a work')
    chapters_parser.add_argument('url', help='Index or episode URL of the work')
    chapters_parser.set_defaults(func=cmd_chapters)

    # Title command
    title_parser = subparsers.add_parser('title', help='Print the title of a work')
    title_parser.add_argument('url', help='Index or episode URL of the work')
    title_parser.set_defaults(func=cmd_title)

    # Convert command
    convert_parser = subparsers.add_parser('convert', help='Convert an HTML file to Aozora text')
    convert_parser.add_argument('file', help='HTML file (UTF-8)')
    convert_parser.add_argument('--pre-html', action='store_true', help='Keep literal line breaks')
    convert_parser.add_argument('--strip-decoration', action='store_true', help='Drop bold/italic/strike tags')
    convert_parser.add_argument('--illust-base', help='Base URL for relative illustration sources')
    convert_parser.add_argument('--illust-pattern', help='Regular expression matching illustration tags')
    convert_parser.add_argument('--omit-ruby-bar', action='store_true', help='Omit ｜ before kanji-only ruby bases')
    convert_parser.set_defaults(func=cmd_convert)

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Run command
    args.func(args)


if __name__ == '__main__':
    main()
