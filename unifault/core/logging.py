"""
Logging configuration.

Every record carries the active trace id so server logs can be joined with
the ``traceId`` a client reports.
"""

from __future__ import annotations

import logging
import sys

from unifault.api.correlation import current_trace_id

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | trace=%(trace_id)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class TraceIdFilter(logging.Filter):
    """Stamp ``record.trace_id`` from the correlation context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "trace_id", None):
            record.trace_id = current_trace_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure process-wide logging.

    Args:
        level: The log level string (DEBUG, INFO, WARNING, ERROR).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(TraceIdFilter())
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
