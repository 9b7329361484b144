"""
Logger injection for audiotools.

Applications can hand in their own logger with set_logger(); otherwise
messages go to the "audiotools" logger with an emoji console formatter.
"""

import logging
import sys
from typing import Optional


class EmojiFormatter(logging.Formatter):
    """Prefixes each record with an emoji for its level."""

    EMOJI_MAP = {
        logging.DEBUG: "🐛",
        logging.INFO: "🟢",
        logging.WARNING: "🟡",
        logging.ERROR: "🛑",
        logging.CRITICAL: "🛑",
    }

    def format(self, record: logging.LogRecord) -> str:
        emoji = self.EMOJI_MAP.get(record.levelno, "")
        return f"{emoji} {super().format(record)}"


_logger: Optional[logging.Logger] = None


def set_logger(logger: Optional[logging.Logger]) -> None:
    """Use *logger* for all audiotools messages. Pass None to reset."""
    global _logger
    _logger = logger


def get_logger() -> logging.Logger:
    """Return the injected logger, or the console fallback."""
    if _logger is not None:
        return _logger

    fallback = logging.getLogger("audiotools")
    # Only configure once
    if not fallback.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(EmojiFormatter("%(message)s"))
        fallback.addHandler(handler)
        fallback.setLevel(logging.INFO)
    return fallback
