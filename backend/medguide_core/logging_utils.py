"""
Logging for the discovery backend.

Lines read ``<utc time> LEVEL logger: message key=value ...``. Context passed
through ``extra=`` (endpoint, attempt, cache key, origin) is appended as sorted
``key=value`` pairs so a failing search can be traced endpoint by endpoint.
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}

_LEVEL_COLORS = {
    logging.DEBUG: "\033[2m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"

# Marks handlers installed here so reconfiguring never touches anyone else's.
_OWNED = "_medguide_handler"


def _context_pairs(record: logging.LogRecord) -> str:
    pairs = []
    for key in sorted(vars(record)):
        if key in _STANDARD_ATTRS or key.startswith("_"):
            continue
        value = getattr(record, key)
        text = str(value)
        if not text or any(ch.isspace() for ch in text):
            text = repr(text)
        pairs.append(f"{key}={text}")
    return " ".join(pairs)


class DiscoveryFormatter(logging.Formatter):
    def __init__(self, use_color: bool = False) -> None:
        super().__init__()
        self.use_color = use_color

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} {record.levelname:<8} {record.name}: {record.getMessage()}"
        context = _context_pairs(record)
        if context:
            line = f"{line} {context}"
        color = _LEVEL_COLORS.get(record.levelno) if self.use_color else None
        if color:
            line = f"{color}{line}{_RESET}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Install the discovery handlers on the root logger.

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Optional path that receives the same lines without color

    Calling this again replaces only the handlers it installed earlier.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in [h for h in root_logger.handlers if getattr(h, _OWNED, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(DiscoveryFormatter(use_color=sys.stdout.isatty()))
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(DiscoveryFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        setattr(handler, _OWNED, True)
        root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
