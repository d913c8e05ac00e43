from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import Request, Response
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from unifault.api.correlation import current_trace_id, request_trace_id
from unifault.core.codes import ErrorCode
from unifault.core.errors import CanonicalError, ErrorContext, FaultRaised
from unifault.services.normalizer import normalize


logger = logging.getLogger(__name__)

T = TypeVar("T")

FailureObserver = Callable[[CanonicalError, BaseException], None]
Classifier = Callable[[BaseException, ErrorContext | None], CanonicalError]


# Status family of framework-raised HTTPExceptions (routing 404/405, auth
# helpers). Application code raises FaultRaised instead.
HTTP_EXCEPTION_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_INPUT,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    413: ErrorCode.FILE_SIZE_EXCEEDED,
    415: ErrorCode.INVALID_FILE_TYPE,
    422: ErrorCode.VALIDATION_ERROR,
    502: ErrorCode.EXTERNAL_API_ERROR,
    503: ErrorCode.CONNECTION_ERROR,
    504: ErrorCode.TIMEOUT_ERROR,
}


def classify_request_failure(
    exc: BaseException, context: ErrorContext | None = None
) -> CanonicalError:
    """normalize(), except that Starlette HTTPExceptions keep their status family."""

    if isinstance(exc, StarletteHTTPException):
        code = HTTP_EXCEPTION_CODES.get(exc.status_code)
        if code is None:
            code = (
                ErrorCode.INTERNAL_SERVER_ERROR
                if exc.status_code >= 500
                else ErrorCode.INVALID_INPUT
            )
        return CanonicalError(
            code=code,
            message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
            details=None if isinstance(exc.detail, str) else exc.detail,
            context=context,
        )
    return normalize(exc, context)


def request_context(request: Request) -> ErrorContext:
    user_id = getattr(request.state, "user_id", None)
    return ErrorContext(
        endpoint=request.url.path,
        method=request.method,
        user_id=str(user_id) if user_id is not None else None,
        request_id=request_trace_id(request),
    )


class Boundary:
    """Failure channel for one unit of work.

    Synchronous raises, awaited failures and failures of observed background
    futures all end up in :meth:`fail`. The first one settles the boundary;
    anything later is logged and dropped.
    """

    def __init__(
        self,
        *,
        context: ErrorContext | None = None,
        on_failure: FailureObserver | None = None,
        classify: Classifier = normalize,
    ) -> None:
        self.context = context
        self._on_failure = on_failure
        self._classify = classify
        self.failure: CanonicalError | None = None

    @property
    def settled(self) -> bool:
        return self.failure is not None

    def fail(self, exc: BaseException) -> FaultRaised:
        if self.failure is None:
            trace_id = current_trace_id() or (self.context.request_id if self.context else None)
            self.failure = self._classify(exc, self.context).with_trace_id(trace_id)
            if self._on_failure is not None:
                self._on_failure(self.failure, exc)
        else:
            logger.debug(
                "Dropping late failure %s after boundary settled with %s",
                type(exc).__name__,
                self.failure.code.value,
            )
        return FaultRaised(self.failure)

    def observe(self, future: asyncio.Future[Any]) -> asyncio.Future[Any]:
        """Route a background future's failure into this boundary."""

        def _done(fut: asyncio.Future[Any]) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self.fail(exc)

        future.add_done_callback(_done)
        return future

    async def run(self, work: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            outcome = work(*args, **kwargs)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as exc:
            raise self.fail(exc) from exc
        if self.failure is not None:
            # An observed background future settled the boundary first.
            raise FaultRaised(self.failure)
        return outcome


async def capture(
    work: Callable[..., T | Awaitable[T]],
    *args: Any,
    context: ErrorContext | None = None,
    on_failure: FailureObserver | None = None,
    **kwargs: Any,
) -> T:
    """Run *work* and turn any failure, sync or async, into one ``FaultRaised``."""

    return await Boundary(context=context, on_failure=on_failure).run(work, *args, **kwargs)


def captured(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator form, applied once where the handler is registered."""

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def _async_wrapper(*args: Any, **kwargs: Any) -> Any:
            return await Boundary().run(func, *args, **kwargs)

        return _async_wrapper

    @functools.wraps(func)
    def _sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            raise Boundary().fail(exc) from exc

    return _sync_wrapper


class CapturingRoute(APIRoute):
    """APIRoute whose handler (dependencies included) runs inside a Boundary.

    Use as ``APIRouter(route_class=CapturingRoute)``.
    """

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        original = super().get_route_handler()

        async def _captured_handler(request: Request) -> Response:
            boundary = Boundary(
                context=request_context(request), classify=classify_request_failure
            )
            return await boundary.run(original, request)

        return _captured_handler
