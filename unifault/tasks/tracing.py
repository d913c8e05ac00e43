"""Trace propagation and failure capture for Celery tasks.

The publishing side stamps the active trace id into the message headers.
``TracedTask`` binds it for the duration of the task body and reports any
failure to the app's error reporter before letting it propagate. Both run
from the task's ``__call__``, which eager ``apply`` and the worker pool
reach alike. The ``task_failure`` signal and ``Task.on_failure`` are skipped
by eager mode when ``task_eager_propagates`` is set.
"""

from __future__ import annotations

import logging
from typing import Any

from celery import Task

from unifault.api.correlation import (
    bind_trace_id,
    current_trace_id,
    generate_trace_id,
    reset_trace_id,
)
from unifault.api.sinks import ErrorSink, RequestMetadata, emit_safely
from unifault.core.errors import CanonicalError, ErrorContext
from unifault.services.normalizer import normalize


logger = logging.getLogger(__name__)

TRACE_HEADER = "trace_id"


def task_trace_id(task: Any) -> str | None:
    """Trace id carried by the task's message, if any."""

    request = getattr(task, "request", None)
    if request is None:
        return None
    trace_id = getattr(request, TRACE_HEADER, None)
    if trace_id:
        return str(trace_id)
    headers = getattr(request, "headers", None) or {}
    trace_id = headers.get(TRACE_HEADER)
    return str(trace_id) if trace_id else None


def stamp_trace_header(headers: dict[str, Any] | None = None, **kwargs: Any) -> None:
    """``before_task_publish`` receiver."""

    if headers is not None and not headers.get(TRACE_HEADER):
        headers[TRACE_HEADER] = current_trace_id() or generate_trace_id()


class TaskErrorReporter:
    def __init__(self, sink: ErrorSink | None, *, diagnostic: bool = True) -> None:
        self.sink = sink
        self.diagnostic = diagnostic

    def report(
        self,
        task: Any,
        exception: BaseException,
        *,
        task_id: str | None = None,
    ) -> CanonicalError:
        name = getattr(task, "name", None) or "unknown"
        trace_id = task_trace_id(task) or current_trace_id()
        error = normalize(
            exception,
            ErrorContext(endpoint=f"task:{name}", method="TASK", request_id=task_id),
        ).with_trace_id(trace_id)
        metadata = RequestMetadata(
            trace_id=trace_id,
            method="TASK",
            path=f"task:{name}",
            redacted=error.to_redacted_dict(),
            diagnostic=self.diagnostic,
            exc=exception,
        )
        emit_safely(self.sink, error, metadata)
        return error


class TracedTask(Task):
    """Base task class installed by :func:`unifault.tasks.celery_app.create_celery_app`."""

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        # Message header first, then the caller's context (eager apply never publishes).
        trace_id = task_trace_id(self) or current_trace_id() or generate_trace_id()
        token = bind_trace_id(trace_id)
        try:
            return super().__call__(*args, **kwargs)
        except Exception as exc:
            reporter: TaskErrorReporter | None = getattr(self.app, "error_reporter", None)
            if reporter is not None:
                reporter.report(self, exc, task_id=self.request.id)
            raise
        finally:
            reset_trace_id(token)
