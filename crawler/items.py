"""Items for novel data extraction."""
import enum
from typing import Optional

from pydantic import BaseModel, Field


class PageType(str, enum.Enum):
    """Kind of work behind a URL."""
    SERIAL = "serial"
    STANDALONE = "standalone"


class ChapterStatus(str, enum.Enum):
    """Chapter states during a download."""
    PENDING = "pending"
    SKIPPED = "skipped"
    FETCHED = "fetched"
    SAVED = "saved"
    FAILED = "failed"


class ChapterItem(BaseModel):
    """Item representing a single chapter."""
    title: str
    url: str
    content: Optional[str] = None  # Aozora text
    raw_html: Optional[str] = None  # Cleaned body markup
    full_page_html: Optional[str] = None
    retry_count: int = 0
    failed: bool = False
    status: ChapterStatus = ChapterStatus.PENDING


class NovelItem(BaseModel):
    """Item representing a novel with all its data."""
    page_type: PageType
    title: str = ""
    author: str = ""
    source_url: str = ""
    chapters: list[ChapterItem] = Field(default_factory=list)  # TOC order
    index_pages_html: list[str] = Field(default_factory=list)

    # Standalone works carry their body directly
    text_content: list[str] = Field(default_factory=list)
    raw_html: list[str] = Field(default_factory=list)
    full_page_html: Optional[str] = None


class ChapterPage(BaseModel):
    """Content extracted from one chapter page."""
    text: str
    structural_html: str = ""
    full_page_html: str = ""
    attempts: int = 1
