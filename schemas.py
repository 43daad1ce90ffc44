"""Pydantic schemas for download requests and results."""
import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from crawler.items import PageType


class TextEncoding(str, enum.Enum):
    """Byte encodings for saved text files."""
    UTF8 = "UTF-8"
    UTF16LE = "UTF-16LE"
    SHIFT_JIS = "Shift-JIS"

    @property
    def codec(self) -> str:
        return {
            TextEncoding.UTF8: "utf-8",
            TextEncoding.UTF16LE: "utf-16-le",
            TextEncoding.SHIFT_JIS: "shift_jis",
        }[self]


class LineEnding(str, enum.Enum):
    """Line endings for saved text files."""
    LF = "LF"
    CRLF = "CR+LF"


class DownloadOptions(BaseModel):
    """Which artifacts a download produces and how text is written."""
    text_encoding: TextEncoding = TextEncoding.UTF8
    line_ending: LineEnding = LineEnding.CRLF
    emit_structural: bool = False
    emit_text: bool = True
    emit_combined: bool = True

    model_config = ConfigDict(frozen=True)


class DownloadSummary(BaseModel):
    """Outcome of one download request."""
    title: str
    author: str
    page_type: PageType
    save_path: str
    total: int = 0
    fetched: int = 0
    skipped: int = 0
    failed: int = 0
    combined_path: Optional[str] = None
