from __future__ import annotations

import contextvars
import secrets
import time
from collections.abc import Iterable, Mapping

from fastapi import FastAPI, Request

from unifault.core.settings import Settings


_trace_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "unifault_trace_id", default=None
)


def generate_trace_id() -> str:
    """Millisecond time prefix plus 40 random bits, e.g. ``1760800000000-9f2c41d0aa``."""

    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def current_trace_id() -> str | None:
    return _trace_id.get()


def bind_trace_id(trace_id: str | None) -> contextvars.Token[str | None]:
    return _trace_id.set(trace_id)


def reset_trace_id(token: contextvars.Token[str | None]) -> None:
    _trace_id.reset(token)


def resolve_trace_id(headers: Mapping[str, str], names: Iterable[str]) -> str:
    """Reuse an upstream trace id verbatim, otherwise mint one."""

    for name in names:
        value = headers.get(name)
        if value and value.strip():
            return value.strip()
    return generate_trace_id()


def request_trace_id(request: Request) -> str | None:
    return getattr(request.state, "trace_id", None) or current_trace_id()


def with_trace_id_header(
    headers: dict[str, str] | None, trace_id: str | None, header_name: str
) -> dict[str, str] | None:
    """Return headers merged with the trace header when trace_id is present."""

    if not trace_id:
        return headers
    merged: dict[str, str] = dict(headers or {})
    merged[header_name] = trace_id
    return merged


def install_correlation(app: FastAPI, settings: Settings) -> None:
    """Assign every request exactly one trace id and echo it on the response."""

    inbound = [settings.trace_header, *settings.legacy_trace_headers]

    @app.middleware("http")
    async def _trace_id_middleware(request: Request, call_next):
        trace_id = resolve_trace_id(request.headers, inbound)
        request.state.trace_id = trace_id
        token = bind_trace_id(trace_id)
        try:
            response = await call_next(request)
        finally:
            reset_trace_id(token)
        response.headers[settings.trace_header] = trace_id
        return response
