from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from collections.abc import Mapping
from typing import Any

from unifault.core.codes import ErrorCode, coerce_code, status_for


class UnknownErrorCode(ValueError):
    """A canonical error was constructed with a code missing from the registry."""


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def format_timestamp(ts: dt.datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    ts = ts.astimezone(dt.timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclasses.dataclass(frozen=True, slots=True)
class ErrorContext:
    """Where a failure was observed. Only ever filled in on the server."""

    endpoint: str | None = None
    method: str | None = None
    user_id: str | None = None
    request_id: str | None = None
    custom_data: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }


@dataclasses.dataclass(frozen=True, slots=True)
class CanonicalError:
    """Immutable cross-tier failure record.

    ``status`` is looked up from the registry and cannot be passed in. The only
    permitted change after construction is filling an absent ``trace_id`` via
    :meth:`with_trace_id`, which returns a new record.
    """

    code: ErrorCode
    message: str
    details: Any | None = None
    context: ErrorContext | None = None
    trace_id: str | None = None
    timestamp: dt.datetime = dataclasses.field(default_factory=utc_now)
    status: int = dataclasses.field(init=False)

    def __post_init__(self) -> None:
        code = coerce_code(self.code)
        if code is None:
            raise UnknownErrorCode(f"unregistered error code: {self.code!r}")
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "status", status_for(code))
        if not isinstance(self.message, str):
            object.__setattr__(self, "message", str(self.message))

    def with_trace_id(self, trace_id: str | None) -> CanonicalError:
        if self.trace_id or not trace_id:
            return self
        return dataclasses.replace(self, trace_id=trace_id)

    def to_response(self) -> dict[str, Any]:
        return make_error_payload(
            code=self.code,
            message=self.message,
            trace_id=self.trace_id,
            details=self.details,
            timestamp=self.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        """Full diagnostic projection (no traceback)."""

        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "status": self.status,
            "details": to_jsonable(self.details),
            "traceId": self.trace_id,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.context is not None:
            payload["context"] = to_jsonable(self.context.as_dict())
        return payload

    def to_redacted_dict(self) -> dict[str, Any]:
        """Projection safe for non-diagnostic environments: no details, no custom data."""

        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "status": self.status,
            "traceId": self.trace_id,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.context is not None:
            payload["endpoint"] = self.context.endpoint
            payload["method"] = self.context.method
        return payload


class FaultRaised(Exception):
    """Raisable wrapper around a :class:`CanonicalError`."""

    def __init__(self, error: CanonicalError) -> None:
        super().__init__(f"[{error.code.value}] {error.message}")
        self.error = error

    @classmethod
    def of(
        cls,
        code: ErrorCode | str,
        message: str,
        *,
        details: Any | None = None,
        context: ErrorContext | None = None,
        trace_id: str | None = None,
    ) -> FaultRaised:
        return cls(
            CanonicalError(
                code=code,
                message=message,
                details=details,
                context=context,
                trace_id=trace_id,
            )
        )


def is_canonical(value: object) -> bool:
    return isinstance(value, (CanonicalError, FaultRaised))


_MAX_DEPTH = 20


def to_jsonable(value: Any, _seen: frozenset[int] = frozenset(), _depth: int = 0) -> Any:
    """Convert *value* into JSON-compatible data.

    Cycles and excessive nesting are replaced by marker strings so that any
    details payload can be put on the wire.
    """

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dt.datetime):
        return format_timestamp(value)
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    if _depth >= _MAX_DEPTH:
        return "<max depth>"
    if id(value) in _seen:
        return "<circular>"
    seen = _seen | {id(value)}
    if isinstance(value, Mapping):
        return {
            str(k): to_jsonable(v, seen, _depth + 1) for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v, seen, _depth + 1) for v in value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name), seen, _depth + 1)
            for f in dataclasses.fields(value)
        }
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    return repr(value)


def make_error_payload(
    *,
    code: ErrorCode | str,
    message: str,
    trace_id: str | None,
    details: Any | None,
    timestamp: dt.datetime | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "code": str(code),
        "message": message,
    }
    if details is not None:
        payload["details"] = to_jsonable(details)
    if trace_id:
        payload["traceId"] = trace_id
    payload["timestamp"] = format_timestamp(timestamp or utc_now())
    return payload


def make_success_payload(
    data: Any, *, trace_id: str | None, message: str | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "data": data}
    if message:
        payload["message"] = message
    if trace_id:
        payload["traceId"] = trace_id
    payload["timestamp"] = format_timestamp(utc_now())
    return payload
