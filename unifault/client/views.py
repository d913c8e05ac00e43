"""Client-side projection of canonical errors.

``reconstruct`` rebuilds a view from a wire error body; ``reconstruct_from_fault``
classifies faults raised on the client itself with the same keyword table
the server uses for native faults.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

import httpx

from unifault.client.catalog import MessageCatalog
from unifault.core.codes import ErrorCode, coerce_code
from unifault.core.errors import CanonicalError, FaultRaised
from unifault.services.normalizer import classify_native


@dataclasses.dataclass(frozen=True, slots=True)
class ClientErrorView:
    # Unknown codes (newer server than client) are kept as plain strings.
    code: ErrorCode | str
    technical_message: str
    ui_message: str
    details: Any | None = None
    trace_id: str | None = None


class ClientFault(Exception):
    """Raised by the client tier; carries the reconstructed view."""

    def __init__(self, view: ClientErrorView) -> None:
        super().__init__(f"[{view.code}] {view.technical_message}")
        self.view = view


class NetworkStatus:
    """Connectivity flag maintained by whoever observes the network."""

    def __init__(self, catalog: MessageCatalog, *, online: bool = True) -> None:
        self._catalog = catalog
        self.online = online

    def mark_online(self) -> None:
        self.online = True

    def mark_offline(self) -> None:
        self.online = False

    @property
    def offline_message(self) -> str:
        return self._catalog.get_message(ErrorCode.OFFLINE)


def is_error_response(body: Any) -> bool:
    return (
        isinstance(body, Mapping)
        and body.get("success") is False
        and isinstance(body.get("code"), str)
        and bool(body.get("code"))
        and isinstance(body.get("message"), str)
    )


def reconstruct(body: Mapping[str, Any], catalog: MessageCatalog) -> ClientErrorView:
    if not is_error_response(body):
        raise ValueError("body is not a canonical error response")
    raw_code = body["code"]
    code: ErrorCode | str = coerce_code(raw_code) or raw_code
    trace_id = body.get("traceId")
    return ClientErrorView(
        code=code,
        technical_message=body["message"],
        ui_message=catalog.get_message(code),
        details=body.get("details"),
        trace_id=trace_id if isinstance(trace_id, str) and trace_id else None,
    )


def from_canonical(error: CanonicalError, catalog: MessageCatalog) -> ClientErrorView:
    return ClientErrorView(
        code=error.code,
        technical_message=error.message,
        ui_message=catalog.get_message(error.code),
        details=error.details,
        trace_id=error.trace_id,
    )


def _view(
    code: ErrorCode, message: str, catalog: MessageCatalog, details: Any | None = None
) -> ClientErrorView:
    return ClientErrorView(
        code=code,
        technical_message=message,
        ui_message=catalog.get_message(code),
        details=details,
    )


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def reconstruct_from_fault(
    fault: Any,
    catalog: MessageCatalog,
    network: NetworkStatus | None = None,
) -> ClientErrorView:
    """Classify a fault raised on the client (transport, offline, rejected work)."""

    if isinstance(fault, ClientErrorView):
        return fault
    if isinstance(fault, ClientFault):
        return fault.view
    if isinstance(fault, FaultRaised):
        return from_canonical(fault.error, catalog)
    if isinstance(fault, CanonicalError):
        return from_canonical(fault, catalog)
    if is_error_response(fault):
        return reconstruct(fault, catalog)

    if isinstance(fault, httpx.HTTPStatusError):
        body = _response_body(fault.response)
        if is_error_response(body):
            return reconstruct(body, catalog)

    if network is not None and not network.online:
        return _view(ErrorCode.OFFLINE, "Network error", catalog)

    if isinstance(fault, httpx.TimeoutException):
        return _view(ErrorCode.TIMEOUT_ERROR, "Request timeout", catalog)
    if isinstance(fault, httpx.NetworkError):
        return _view(ErrorCode.NETWORK_ERROR, str(fault) or "Network error", catalog)

    if isinstance(fault, BaseException):
        code = classify_native(fault)
        if code is ErrorCode.CONNECTION_ERROR:
            # From the client's side a refused connection is a network fault.
            code = ErrorCode.NETWORK_ERROR
        elif code is ErrorCode.INTERNAL_SERVER_ERROR:
            code = ErrorCode.UNKNOWN_ERROR
        return _view(
            code,
            str(fault) or "An unexpected error occurred",
            catalog,
            details={"exception": type(fault).__name__},
        )

    if isinstance(fault, str) and fault:
        return _view(ErrorCode.UNKNOWN_ERROR, fault, catalog)
    return _view(ErrorCode.UNKNOWN_ERROR, "An unexpected error occurred", catalog)


def validation_issues(view: ClientErrorView) -> list[dict[str, Any]]:
    details = view.details
    if isinstance(details, Mapping):
        issues = details.get("issues")
        if isinstance(issues, list):
            return issues
    return []
