from __future__ import annotations

import dataclasses
import datetime as dt

import pytest

from unifault.core.codes import ErrorCode
from unifault.core.errors import (
    CanonicalError,
    ErrorContext,
    FaultRaised,
    UnknownErrorCode,
    format_timestamp,
    make_success_payload,
    to_jsonable,
)


def test_status_is_derived_from_code() -> None:
    err = CanonicalError(code="DUPLICATE_KEY", message="dup")
    assert err.code is ErrorCode.DUPLICATE_KEY
    assert err.status == 409


def test_unregistered_code_is_rejected() -> None:
    with pytest.raises(UnknownErrorCode):
        CanonicalError(code="MADE_UP", message="x")


def test_record_is_immutable() -> None:
    err = CanonicalError(code=ErrorCode.CONFLICT, message="x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        err.message = "y"  # type: ignore[misc]


def test_with_trace_id_only_fills_absent_value() -> None:
    err = CanonicalError(code=ErrorCode.CONFLICT, message="x")
    traced = err.with_trace_id("t-1")
    assert traced is not err
    assert traced.trace_id == "t-1"
    assert err.trace_id is None

    assert traced.with_trace_id("t-2") is traced
    assert err.with_trace_id("") is err


def test_wire_payload_shape() -> None:
    ts = dt.datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=dt.timezone.utc)
    err = CanonicalError(
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message="gone",
        details={"id": 7},
        trace_id="abc",
        timestamp=ts,
    )
    assert err.to_response() == {
        "success": False,
        "code": "RESOURCE_NOT_FOUND",
        "message": "gone",
        "details": {"id": 7},
        "traceId": "abc",
        "timestamp": "2024-01-02T03:04:05.678Z",
    }


def test_payload_omits_absent_fields() -> None:
    body = CanonicalError(code=ErrorCode.UNKNOWN_ERROR, message="m").to_response()
    assert "details" not in body
    assert "traceId" not in body


def test_redacted_projection_drops_details() -> None:
    err = CanonicalError(
        code=ErrorCode.DATABASE_ERROR,
        message="db",
        details={"query": "select secret"},
        context=ErrorContext(endpoint="/x", method="GET", custom_data={"k": "v"}),
    )
    redacted = err.to_redacted_dict()
    assert "details" not in redacted
    assert "context" not in redacted
    assert redacted["endpoint"] == "/x"

    full = err.to_dict()
    assert full["details"] == {"query": "select secret"}
    assert full["context"] == {"endpoint": "/x", "method": "GET", "custom_data": {"k": "v"}}


def test_circular_details_still_serialize() -> None:
    loop: dict = {"name": "a"}
    loop["self"] = loop
    out = to_jsonable(loop)
    assert out == {"name": "a", "self": "<circular>"}

    body = CanonicalError(code=ErrorCode.INTERNAL_SERVER_ERROR, message="m", details=loop).to_response()
    assert body["details"]["self"] == "<circular>"


def test_deep_details_are_truncated() -> None:
    nested: dict = {}
    cursor = nested
    for _ in range(50):
        cursor["next"] = {}
        cursor = cursor["next"]
    out = to_jsonable(nested)
    depth = 0
    while isinstance(out, dict):
        out = out["next"]
        depth += 1
    assert out == "<max depth>"
    assert depth == 20


def test_jsonable_handles_odd_values() -> None:
    assert to_jsonable(ErrorCode.OFFLINE) == "OFFLINE"
    assert to_jsonable((1, 2)) == [1, 2]
    assert to_jsonable(ValueError("bad")) == {"type": "ValueError", "message": "bad"}
    assert to_jsonable(object()).startswith("<object object")


def test_naive_timestamps_are_treated_as_utc() -> None:
    assert format_timestamp(dt.datetime(2024, 5, 1, 12, 0)) == "2024-05-01T12:00:00.000Z"


def test_fault_raised_carries_record() -> None:
    fault = FaultRaised.of(ErrorCode.FORBIDDEN, "no", details={"role": "guest"})
    assert fault.error.status == 403
    assert str(fault) == "[FORBIDDEN] no"


def test_success_envelope() -> None:
    body = make_success_payload({"id": 1}, trace_id="t")
    assert body["success"] is True
    assert body["data"] == {"id": 1}
    assert body["traceId"] == "t"
    assert body["timestamp"].endswith("Z")
