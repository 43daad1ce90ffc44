"""Progress notifications sent while a download runs."""
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Fire-and-forget progress channel.

    Every notification is logged; optional callbacks forward it to a
    presentation layer. A failing callback is logged and ignored so it
    can never break a download.
    """

    def __init__(
        self,
        on_progress: Optional[Callable[[int], None]] = None,
        on_progress_text: Optional[Callable[[str], None]] = None,
        on_log: Optional[Callable[[str], None]] = None,
    ):
        self.on_progress = on_progress
        self.on_progress_text = on_progress_text
        self.on_log = on_log

    def progress(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        logger.debug(f"Progress: {value}%")
        self._notify(self.on_progress, value)

    def progress_text(self, label: str) -> None:
        logger.debug(f"Progress label: {label}")
        self._notify(self.on_progress_text, label)

    def log(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        self._notify(self.on_log, message)

    def _notify(self, callback, payload) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"Progress callback failed: {e}")
