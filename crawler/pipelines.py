"""Pipelines that write downloaded chapters to disk."""
import logging
from pathlib import Path
from typing import Optional

from crawler.exceptions import PersistenceError
from crawler.middlewares import RetryPolicy
from normalizer import sanitize_filename
from schemas import LineEnding, TextEncoding

logger = logging.getLogger(__name__)


class TextFilePipeline:
    """
    Save already-formatted text as .txt files.

    Line endings and byte encoding are applied here; callers always
    pass "\n"-separated text.
    """

    def __init__(
        self,
        save_path: Path,
        encoding: TextEncoding = TextEncoding.UTF8,
        line_ending: LineEnding = LineEnding.CRLF,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.save_path = Path(save_path)
        self.encoding = TextEncoding(encoding)
        self.line_ending = LineEnding(line_ending)
        self.retry_policy = retry_policy or RetryPolicy.fixed(3, 2.0)

    def path_for(self, name: str) -> Path:
        return self.save_path / f"{sanitize_filename(name)}.txt"

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def encode(self, content: str) -> bytes:
        if self.line_ending is LineEnding.CRLF:
            content = content.replace("\n", "\r\n")
        try:
            return content.encode(self.encoding.codec)
        except UnicodeEncodeError as e:
            raise PersistenceError(f"{self.encoding.value} encoding error: {e}") from e

    def write_once(self, path: Path, data: bytes) -> Path:
        """Write already encoded bytes without retrying."""
        try:
            path.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"Failed to save {path}: {e}") from e
        return path

    def write(self, name: str, content: str) -> Path:
        """
        Write name.txt, retrying per the save policy.

        Encoding happens once up front; only the disk write is retried.

        Raises:
            PersistenceError: content cannot be represented in the encoding
            RetryExhaustedError: every write attempt failed
        """
        path = self.path_for(name)
        data = self.encode(content)
        self.retry_policy.run(
            lambda: self.write_once(path, data),
            f"saving {name}.txt",
        )
        logger.debug(f"Saved {path}")
        return path


class HtmlFilePipeline:
    """Save structural chapter HTML under html/{episode}.html."""

    def __init__(self, save_path: Path, retry_policy: Optional[RetryPolicy] = None):
        self.html_dir = Path(save_path) / "html"
        self.retry_policy = retry_policy or RetryPolicy.fixed(3, 2.0)

    def path_for(self, episode_number: str) -> Path:
        return self.html_dir / f"{sanitize_filename(episode_number)}.html"

    def exists(self, episode_number: str) -> bool:
        return self.path_for(episode_number).exists()

    def write_once(self, episode_number: str, html: str) -> Path:
        path = self.path_for(episode_number)
        try:
            self.html_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to save {path}: {e}") from e
        return path

    def write(self, episode_number: str, html: str) -> Path:
        return self.retry_policy.run(
            lambda: self.write_once(episode_number, html),
            f"saving html/{episode_number}.html",
        )
