from __future__ import annotations

import dataclasses
import logging
from typing import Any, Protocol

from unifault.core.errors import CanonicalError


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class RequestMetadata:
    """What the dispatcher knows about the failing unit of work."""

    trace_id: str | None
    method: str | None = None
    path: str | None = None
    # Detail-stripped projection for non-diagnostic environments.
    redacted: dict[str, Any] = dataclasses.field(default_factory=dict)
    diagnostic: bool = True
    exc: BaseException | None = None


class ErrorSink(Protocol):
    def __call__(self, error: CanonicalError, metadata: RequestMetadata) -> None: ...


class LoggingSink:
    """Default sink: one log line per canonical error.

    Diagnostic environments get the full record and the traceback; otherwise
    only the redacted projection is written.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("unifault.errors")

    def __call__(self, error: CanonicalError, metadata: RequestMetadata) -> None:
        level = logging.ERROR if error.status >= 500 else logging.WARNING
        if metadata.diagnostic:
            exc = metadata.exc
            self._log.log(
                level,
                "[%s] %s (trace_id=%s method=%s path=%s) %s",
                error.code.value,
                error.message,
                metadata.trace_id,
                metadata.method,
                metadata.path,
                error.to_dict(),
                exc_info=(type(exc), exc, exc.__traceback__) if exc is not None else None,
            )
        else:
            self._log.log(level, "[%s] %s", error.code.value, metadata.redacted)


def emit_safely(sink: ErrorSink | None, error: CanonicalError, metadata: RequestMetadata) -> None:
    """Call *sink*; a failing sink is reported here and never propagates."""

    if sink is None:
        return
    try:
        sink(error, metadata)
    except Exception:
        logger.exception(
            "Error sink failed (code=%s trace_id=%s)", error.code.value, metadata.trace_id
        )
