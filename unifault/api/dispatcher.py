"""
Central failure dispatcher.

Every failure of a request ends here: it is finalized into a canonical
error, handed to the error sink and written as the wire envelope. The
handlers registered by :func:`register_error_handlers` are the last
failure-handling stage of the pipeline.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from unifault.api.capture import classify_request_failure, request_context
from unifault.api.correlation import request_trace_id, with_trace_id_header
from unifault.api.sinks import ErrorSink, LoggingSink, RequestMetadata, emit_safely
from unifault.core.errors import CanonicalError, ErrorContext, FaultRaised
from unifault.core.settings import Settings
from unifault.services.normalizer import normalize


class ErrorDispatcher:
    def __init__(self, settings: Settings, sink: ErrorSink | None = None) -> None:
        self.settings = settings
        self.sink: ErrorSink = sink if sink is not None else LoggingSink()

    def finalize(
        self,
        fault: object,
        *,
        trace_id: str | None,
        context: ErrorContext | None = None,
    ) -> CanonicalError:
        if isinstance(fault, CanonicalError):
            error = fault
        elif isinstance(fault, FaultRaised):
            error = fault.error
        elif isinstance(fault, BaseException):
            error = classify_request_failure(fault, context)
        else:
            error = normalize(fault, context)
        return error.with_trace_id(trace_id)

    def dispatch(
        self,
        fault: object,
        *,
        trace_id: str | None,
        context: ErrorContext | None = None,
    ) -> CanonicalError:
        """Finalize *fault* and report it to the sink. Returns the canonical error."""

        error = self.finalize(fault, trace_id=trace_id, context=context)
        exc = fault if isinstance(fault, BaseException) else None
        if isinstance(exc, FaultRaised) and exc.__cause__ is not None:
            exc = exc.__cause__
        metadata = RequestMetadata(
            trace_id=trace_id,
            method=context.method if context else None,
            path=context.endpoint if context else None,
            redacted=error.to_redacted_dict(),
            diagnostic=self.settings.diagnostic,
            exc=exc,
        )
        emit_safely(self.sink, error, metadata)
        return error

    def respond(
        self,
        error: CanonicalError,
        *,
        trace_id: str | None,
        headers: dict[str, str] | None = None,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=error.status,
            headers=with_trace_id_header(headers, trace_id, self.settings.trace_header),
            content=error.to_response(),
        )

    async def handle(self, request: Request, exc: Exception) -> JSONResponse:
        trace_id = request_trace_id(request)
        error = self.dispatch(exc, trace_id=trace_id, context=request_context(request))
        headers = None
        if isinstance(exc, StarletteHTTPException) and exc.headers:
            headers = dict(exc.headers)
        return self.respond(error, trace_id=trace_id, headers=headers)


def register_error_handlers(app: FastAPI, dispatcher: ErrorDispatcher) -> None:
    """Install the dispatcher as the application's exception handler.

    Args:
        app: The FastAPI application instance.
        dispatcher: The dispatcher that owns the sink.
    """

    app.state.error_dispatcher = dispatcher
    for exc_type in (FaultRaised, RequestValidationError, StarletteHTTPException, Exception):
        app.add_exception_handler(exc_type, dispatcher.handle)
