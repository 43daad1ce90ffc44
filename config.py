"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Requests
    request_timeout: float = 10.0

    # Pacing between chapters, in seconds
    chapter_interval: float = 10.0

    # Chapter fetch retry (linear backoff: attempt * delay)
    fetch_max_attempts: int = 3
    fetch_retry_delay: float = 1.0

    # File save retry (fixed delay)
    save_max_attempts: int = 3
    save_retry_delay: float = 2.0

    # Consecutive chapter failures before a download is aborted
    max_consecutive_failures: int = 3

    # Output
    output_dir: Optional[str] = None
    text_encoding: str = "UTF-8"
    line_ending: str = "CR+LF"
    emit_text: bool = True
    emit_structural: bool = False
    emit_combined: bool = True

    # Conversion
    strip_decoration_tags: bool = False

    # Environment
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
