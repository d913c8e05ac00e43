from __future__ import annotations

import dataclasses
import logging
from typing import Any

import httpx

from unifault.client.catalog import MessageCatalog
from unifault.client.views import (
    ClientFault,
    NetworkStatus,
    is_error_response,
    reconstruct,
    reconstruct_from_fault,
)
from unifault.core.codes import ErrorCode


logger = logging.getLogger(__name__)


class ApiClient:
    """Thin httpx wrapper that speaks the canonical envelope.

    Success bodies of the form ``{"success": true, "data": ...}`` are unwrapped;
    every failure surfaces as :class:`ClientFault`. The trace id of the last
    response is kept so it can be shown next to an error.
    """

    def __init__(
        self,
        *,
        base_url: str,
        catalog: MessageCatalog,
        network: NetworkStatus | None = None,
        trace_header: str = "X-Trace-Id",
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._catalog = catalog
        self._network = network
        self._trace_header = trace_header
        self._client = http_client or httpx.Client(base_url=base_url, timeout=timeout_s)
        self.last_trace_id: str | None = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        url: str,
        *,
        trace_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if trace_id:
            headers[self._trace_header] = trace_id

        try:
            response = self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise ClientFault(reconstruct_from_fault(exc, self._catalog, self._network)) from exc

        self.last_trace_id = response.headers.get(self._trace_header)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error or is_error_response(body):
            if is_error_response(body):
                view = reconstruct(body, self._catalog)
            else:
                view = reconstruct_from_fault(
                    {
                        "success": False,
                        "code": ErrorCode.UNKNOWN_ERROR.value,
                        "message": f"HTTP {response.status_code}",
                        "traceId": self.last_trace_id,
                    },
                    self._catalog,
                )
            if view.trace_id is None and self.last_trace_id:
                view = dataclasses.replace(view, trace_id=self.last_trace_id)
            logger.debug("Request failed: %s %s -> %s", method, url, view.code)
            raise ClientFault(view)

        if isinstance(body, dict) and body.get("success") is True and "data" in body:
            return body["data"]
        return body

    def get(self, url: str, **kwargs: Any) -> Any:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self.request("POST", url, **kwargs)
