"""Mappers for failures reported by third-party services.

Unlike :func:`unifault.services.normalizer.normalize`, these are called
explicitly by integration code that already knows which kind of service it
was talking to.
"""

from __future__ import annotations

from typing import Any

import httpx

from unifault.core.codes import ErrorCode
from unifault.core.errors import CanonicalError
from unifault.services.shapes import message_of, read


def _text(value: Any, name: str) -> str:
    found = read(value, name)
    return found if isinstance(found, str) else ""


def map_payment_error(error: Any) -> CanonicalError:
    """Card processors (Stripe style ``type`` field)."""

    message = message_of(error, "Payment processing failed")
    error_type = _text(error, "type")

    if "card_error" in error_type:
        return CanonicalError(
            code=ErrorCode.PAYMENT_ERROR,
            message=message_of(error, "Card payment failed"),
            details={
                "code": read(error, "code"),
                "decline_code": read(error, "decline_code"),
                "charge": read(error, "charge"),
            },
        )
    if "rate_limit_error" in error_type:
        return CanonicalError(
            code=ErrorCode.TIMEOUT_ERROR,
            message="Payment service temporarily unavailable. Please try again.",
            details={"error": read(error, "code")},
        )
    if "authentication_error" in error_type:
        return CanonicalError(
            code=ErrorCode.EXTERNAL_API_ERROR,
            message="Payment service authentication failed",
            details={"error": read(error, "code")},
        )
    if "invalid_request_error" in error_type:
        return CanonicalError(
            code=ErrorCode.INVALID_INPUT,
            message=message_of(error, "Invalid payment information"),
            details={"param": read(error, "param")},
        )
    return CanonicalError(code=ErrorCode.PAYMENT_ERROR, message=message, details={"type": error_type or None})


def map_email_error(error: Any) -> CanonicalError:
    message = message_of(error, "Email service failed")
    lowered = message.lower()
    code = read(error, "code")
    status = read(error, "status", "status_code")

    if code == 401 or "authentication" in lowered:
        return CanonicalError(
            code=ErrorCode.EMAIL_ERROR,
            message="Email service authentication failed",
            details={"service": read(error, "service")},
        )
    if code == 429 or "rate limit" in lowered:
        return CanonicalError(
            code=ErrorCode.TIMEOUT_ERROR,
            message="Email service rate limited. Please try again later.",
            details={"retryAfter": read(error, "retryAfter", "retry_after")},
        )
    if status == 400 or "invalid" in lowered:
        return CanonicalError(
            code=ErrorCode.INVALID_INPUT,
            message="Invalid email configuration",
            details={"message": message},
        )
    return CanonicalError(code=ErrorCode.EMAIL_ERROR, message=message)


def map_http_error(error: Any) -> CanonicalError:
    """Generic upstream HTTP failure given ``status``/``status_code``, ``url``, ``service``."""

    status = read(error, "status", "statusCode", "status_code")
    if not isinstance(status, int):
        status = 500
    message = message_of(error, "External service error")

    if status == 408 or read(error, "code") == "ETIMEDOUT":
        return CanonicalError(
            code=ErrorCode.TIMEOUT_ERROR,
            message="External service request timed out",
            details={"url": read(error, "url")},
        )
    if status == 400:
        return CanonicalError(
            code=ErrorCode.INVALID_INPUT, message=message, details=read(error, "details")
        )
    if status in (401, 403):
        return CanonicalError(
            code=ErrorCode.EXTERNAL_API_ERROR,
            message="Service authentication failed",
            details={"service": read(error, "service")},
        )
    if status == 404:
        return CanonicalError(
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message="External resource not found",
            details={"url": read(error, "url")},
        )
    if status in (429, 503):
        return CanonicalError(
            code=ErrorCode.TIMEOUT_ERROR,
            message="Service temporarily unavailable. Please try again later.",
            details={"retryAfter": read(error, "retryAfter", "retry_after")},
        )
    if status >= 500:
        return CanonicalError(
            code=ErrorCode.EXTERNAL_API_ERROR,
            message="External service error. Please try again later.",
            details={"status": status, "service": read(error, "service")},
        )
    return CanonicalError(
        code=ErrorCode.EXTERNAL_API_ERROR, message=message, details={"status": status}
    )


def _request_url(exc: httpx.HTTPError) -> str | None:
    try:
        return str(exc.request.url)
    except RuntimeError:
        # request is only set when the error came out of a client call
        return None


def map_httpx_error(exc: httpx.HTTPError, *, service: str | None = None) -> CanonicalError:
    """Map an httpx failure raised while calling an upstream service."""

    if isinstance(exc, httpx.TimeoutException):
        return CanonicalError(
            code=ErrorCode.TIMEOUT_ERROR,
            message="External service request timed out",
            details={"url": _request_url(exc), "service": service},
        )
    if isinstance(exc, httpx.HTTPStatusError):
        retry_after = exc.response.headers.get("Retry-After")
        return map_http_error(
            {
                "status": exc.response.status_code,
                "message": str(exc),
                "url": _request_url(exc),
                "service": service,
                "retryAfter": retry_after,
            }
        )
    return CanonicalError(
        code=ErrorCode.EXTERNAL_API_ERROR,
        message=str(exc) or "External service error",
        details={"service": service},
    )
