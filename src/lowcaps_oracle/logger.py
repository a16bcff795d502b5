"""Console logging for lowcaps-oracle."""

import logging
import os
import sys
from typing import TextIO

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Per-request HTTP chatter; held back unless TRACE is asked for.
NOISY_LOGGERS = ("urllib3", "requests")

_LEVEL_COLORS = {
    TRACE: "\033[90m",
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_BOLD = "\033[1m"
_RESET = "\033[0m"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Paints the level name when writing to a terminal."""

    def __init__(self, fmt: str, datefmt: str, use_color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return super().format(record)

        plain = record.levelname
        record.levelname = f"{color}{_BOLD}{plain}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def _resolve_level(level_name: str) -> int:
    if level_name == "TRACE":
        return TRACE
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_level: str | None = None, stream: TextIO | None = None) -> None:
    """Install a single console handler on the root logger.

    ``log_level`` wins over the LOG_LEVEL environment variable; INFO is the
    fallback. Colors are only used when the stream is a TTY so piped output
    stays plain.

    urllib3/requests stay at WARNING for every level except TRACE.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = _resolve_level(level_name)
    stream = stream or sys.stdout

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        ColoredFormatter(
            LOG_FORMAT,
            DATE_FORMAT,
            use_color=hasattr(stream, "isatty") and stream.isatty(),
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    noisy_level = TRACE if level <= TRACE else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)
