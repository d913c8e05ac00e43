"""Classify arbitrary failure values into :class:`CanonicalError`.

Rule chain, first match wins:

1. already canonical (``CanonicalError`` or ``FaultRaised``) -> returned unchanged
2. exceptions -> specific structured shapes, then the native keyword table,
   then the HTTP-like shape, then the native subtype table
3. ``str`` -> UNKNOWN_ERROR carrying the string
4. mappings and other objects -> structured shapes, falling back to UNKNOWN_ERROR
5. anything else (None, numbers, bytes) -> UNKNOWN_ERROR with a generic message

The native keyword table matches message substrings and will misfile a
message that mentions e.g. "network" for unrelated reasons. It is kept for
compatibility with existing clients and is not meant to grow.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Mapping, Sequence
from typing import Any

from unifault.core.codes import ErrorCode
from unifault.core.errors import CanonicalError, ErrorContext, FaultRaised
from unifault.services.shapes import SHAPES, Shape, extract_http_like, matches_http_like


logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "An unexpected error occurred"
NATIVE_DEFAULT_MESSAGE = "An error occurred"

# Order matters: a "network timeout" is a timeout.
NATIVE_KEYWORDS: tuple[tuple[tuple[str, ...], ErrorCode], ...] = (
    (("timeout", "timed out"), ErrorCode.TIMEOUT_ERROR),
    (("network",), ErrorCode.NETWORK_ERROR),
    (("econnrefused", "connection refused"), ErrorCode.CONNECTION_ERROR),
    (
        (
            "enotfound",
            "name or service not known",
            "nodename nor servname",
            "getaddrinfo failed",
            "temporary failure in name resolution",
        ),
        ErrorCode.DNS_ERROR,
    ),
)

NATIVE_SUBTYPES: tuple[tuple[type[BaseException] | tuple[type[BaseException], ...], ErrorCode], ...] = (
    (TimeoutError, ErrorCode.TIMEOUT_ERROR),
    (ConnectionRefusedError, ErrorCode.CONNECTION_ERROR),
    (socket.gaierror, ErrorCode.DNS_ERROR),
    (ConnectionError, ErrorCode.NETWORK_ERROR),
    # URI-style decoding faults are bad input, not bugs.
    (UnicodeError, ErrorCode.INVALID_INPUT),
    (
        (SyntaxError, NameError, TypeError, IndexError, OverflowError, RecursionError),
        ErrorCode.RUNTIME_ERROR,
    ),
)

_PRIMITIVES = (bool, int, float, complex, bytes, bytearray, memoryview)


def keyword_code(exc: BaseException) -> ErrorCode | None:
    text = str(exc).lower()
    for keywords, code in NATIVE_KEYWORDS:
        if any(k in text for k in keywords):
            return code
    return None


def classify_native(exc: BaseException) -> ErrorCode:
    code = keyword_code(exc)
    if code is not None:
        return code
    for types, code in NATIVE_SUBTYPES:
        if isinstance(exc, types):
            return code
    return ErrorCode.INTERNAL_SERVER_ERROR


def normalize_native(
    exc: BaseException,
    context: ErrorContext | None = None,
    code: ErrorCode | None = None,
) -> CanonicalError:
    return CanonicalError(
        code=code or classify_native(exc),
        message=str(exc) or NATIVE_DEFAULT_MESSAGE,
        details={"exception": type(exc).__name__},
        context=context,
    )


def match_shape(value: Any, shapes: Sequence[Shape] = SHAPES) -> Shape | None:
    is_exc = isinstance(value, BaseException)
    for shape in shapes:
        if is_exc and not shape.exceptions:
            continue
        if shape.matches(value):
            return shape
    return None


def _is_structured(value: Any) -> bool:
    return value is not None and not isinstance(value, _PRIMITIVES)


def _normalize(value: Any, context: ErrorContext | None) -> CanonicalError:
    if isinstance(value, CanonicalError):
        return value
    if isinstance(value, FaultRaised):
        return value.error

    if isinstance(value, BaseException):
        shape = match_shape(value)
        if shape is not None:
            return shape.extract(value, context)
        keyword = keyword_code(value)
        if keyword is not None:
            return normalize_native(value, context, keyword)
        if matches_http_like(value):
            return extract_http_like(value, context)
        return normalize_native(value, context)

    if isinstance(value, str):
        return CanonicalError(code=ErrorCode.UNKNOWN_ERROR, message=value, context=context)

    if isinstance(value, Mapping) or _is_structured(value):
        shape = match_shape(value)
        if shape is not None:
            return shape.extract(value, context)

    return CanonicalError(code=ErrorCode.UNKNOWN_ERROR, message=GENERIC_MESSAGE, context=context)


def normalize(value: Any, context: ErrorContext | None = None) -> CanonicalError:
    """Return the canonical form of *value*. Never raises."""

    try:
        return _normalize(value, context)
    except Exception:
        # A shape check tripped over a hostile value (raising __getattr__, broken
        # mapping). Classification still has to produce a record.
        logger.debug("normalization fell back to UNKNOWN_ERROR", exc_info=True)
        return CanonicalError(
            code=ErrorCode.UNKNOWN_ERROR, message=GENERIC_MESSAGE, context=context
        )
