"""
Logging setup for the OAuth session coordinator.

colorlog drives console output. Failures swallowed by best-effort paths
(sign-out, migration, reinstall cleanup) are written through
``log_structured_error`` and counted per category so a summary can be
printed at shutdown.
"""

import logging
import os
import re
import sys
import threading
import time
from collections import defaultdict, deque
from typing import Any

import colorlog

MAX_ERRORS_PER_CATEGORY = 1000
RECENT_WINDOW_SECONDS = 3600

_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "magenta",
}

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/]{8,}=*)", re.IGNORECASE),
    re.compile(r"((?:access|refresh|id)_token['\"]?\s*[:=]\s*['\"]?)([^\s'\",&]{8,})"),
)


class TokenRedactionFilter(logging.Filter):
    """Masks bearer tokens and token form fields in rendered messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SECRET_PATTERNS:
            redacted = pattern.sub(lambda m: f"{m.group(1)}***{m.group(2)[-4:]}", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class ErrorAggregator:
    """Counts logged failures by category.

    Each category keeps its latest ``MAX_ERRORS_PER_CATEGORY`` entries.
    Thread-safe since file stores log from executor threads.
    """

    def __init__(self):
        self.errors: dict[str, deque[dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=MAX_ERRORS_PER_CATEGORY)
        )
        self.lock = threading.Lock()

    def record_error(self, error_type: str, message: str, context: dict[str, Any] = None) -> None:
        with self.lock:
            self.errors[error_type].append(
                {"timestamp": time.time(), "message": message, "context": context or {}}
            )

    def get_error_summary(self) -> dict[str, Any]:
        """Per category: total kept, count inside the recent window, last entry."""
        cutoff = time.time() - RECENT_WINDOW_SECONDS
        with self.lock:
            return {
                error_type: {
                    "total_count": len(entries),
                    "recent_count": sum(1 for e in entries if e["timestamp"] >= cutoff),
                    "last_occurrence": entries[-1] if entries else None,
                }
                for error_type, entries in self.errors.items()
            }

    def clear(self) -> None:
        with self.lock:
            self.errors.clear()

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return

        logging.warning("🚨 ERROR SUMMARY REPORT")
        for error_type, stats in sorted(summary.items()):
            logging.warning(
                f"  {error_type}: {stats['total_count']} total, {stats['recent_count']} in last hour"
            )
            last = stats["last_occurrence"]
            if last:
                logging.warning(f"    Last: {last['message']}")


error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: Exception = None,
    context: dict[str, Any] = None,
    level: int = logging.ERROR,
    logger: logging.Logger | None = None,
) -> None:
    """Write ``[CATEGORY] message | Exception: ... | Context: k=v`` and count it.

    Args:
        error_type: Category such as 'network', 'auth' or 'storage'.
        message: What failed.
        exception: The caught exception, if any.
        context: Extra key/value pairs for debugging.
        level: Logging level (default: ERROR).
        logger: Logger to write to (defaults to the root logger).
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception:
        parts.append(f"Exception: {type(exception).__name__}: {str(exception)}")
    if context:
        parts.append("Context: " + " | ".join(f"{k}={v}" for k, v in context.items()))

    (logger or logging.getLogger()).log(level, " | ".join(parts))
    error_aggregator.record_error(error_type, message, context)


class LoggerConfigurator:
    """Configures root logging with colorlog.

    The level is DEBUG when the ``DEBUG`` environment variable is 'true',
    '1' or 'yes', INFO otherwise, unless ``level`` is passed explicitly.
    """

    def __init__(self, level: int | None = None, stream=None):
        self.level = level
        self.stream = stream or sys.stderr

    def _resolve_level(self) -> int:
        if self.level is not None:
            return self.level
        debug_env = os.environ.get("DEBUG", "").lower()
        return logging.DEBUG if debug_env in ("true", "1", "yes") else logging.INFO

    @staticmethod
    def _build_formatter() -> colorlog.ColoredFormatter:
        return colorlog.ColoredFormatter(
            "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors=_LOG_COLORS,
            secondary_log_colors={"message": {"ERROR": "red", "CRITICAL": "magenta"}},
            reset=True,
        )

    def configure(self) -> None:
        log_level = self._resolve_level()
        formatter = self._build_formatter()

        root_logger = logging.getLogger()
        if not root_logger.handlers:
            root_logger.addHandler(logging.StreamHandler(self.stream))
        root_logger.setLevel(log_level)

        for h in root_logger.handlers:
            h.setFormatter(formatter)
            if not any(isinstance(f, TokenRedactionFilter) for f in h.filters):
                h.addFilter(TokenRedactionFilter())

        # aiohttp client chatter is noise at DEBUG
        logging.getLogger("aiohttp").setLevel(logging.WARNING)
