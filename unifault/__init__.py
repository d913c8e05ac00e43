"""Canonical error handling for server and client tiers.

Importing this module validates the error code registry.
"""

from __future__ import annotations

from unifault.core.codes import HTTP_STATUS_CODES, ErrorCode, status_for
from unifault.core.errors import CanonicalError, ErrorContext, FaultRaised
from unifault.services.normalizer import normalize

__all__ = [
    "HTTP_STATUS_CODES",
    "CanonicalError",
    "ErrorCode",
    "ErrorContext",
    "FaultRaised",
    "normalize",
    "status_for",
]
