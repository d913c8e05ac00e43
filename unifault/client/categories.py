from __future__ import annotations

import enum
from typing import Any

from unifault.core.codes import ErrorCode, coerce_code


class Category(str, enum.Enum):
    VALIDATION = "validation"
    AUTH = "auth"
    NETWORK = "network"
    SERVER = "server"


VALIDATION_CODES = frozenset(
    {
        ErrorCode.VALIDATION_ERROR,
        ErrorCode.INVALID_INPUT,
        ErrorCode.MISSING_REQUIRED_FIELD,
        ErrorCode.CAST_ERROR,
        ErrorCode.SCHEMA_VALIDATION_ERROR,
    }
)
AUTH_CODES = frozenset(
    {
        ErrorCode.UNAUTHORIZED,
        ErrorCode.AUTH_FAILED,
        ErrorCode.INVALID_CREDENTIALS,
        ErrorCode.INVALID_TOKEN,
        ErrorCode.TOKEN_EXPIRED,
    }
)
NETWORK_CODES = frozenset(
    {
        ErrorCode.NETWORK_ERROR,
        ErrorCode.TIMEOUT_ERROR,
        ErrorCode.OFFLINE,
        ErrorCode.DNS_ERROR,
    }
)
SERVER_CODES = frozenset(
    {
        ErrorCode.INTERNAL_SERVER_ERROR,
        ErrorCode.DATABASE_ERROR,
        ErrorCode.CONNECTION_ERROR,
        ErrorCode.EXTERNAL_API_ERROR,
        ErrorCode.THIRD_PARTY_ERROR,
        ErrorCode.EMAIL_ERROR,
    }
)

CATEGORY_CODES: dict[Category, frozenset[ErrorCode]] = {
    Category.VALIDATION: VALIDATION_CODES,
    Category.AUTH: AUTH_CODES,
    Category.NETWORK: NETWORK_CODES,
    Category.SERVER: SERVER_CODES,
}


def _code(error: Any) -> ErrorCode | None:
    """Accept a code, a CanonicalError, a ClientErrorView or a wire body."""

    if isinstance(error, dict):
        return coerce_code(error.get("code"))
    return coerce_code(getattr(error, "code", error))


def is_validation_error(error: Any) -> bool:
    return _code(error) in VALIDATION_CODES


def is_auth_error(error: Any) -> bool:
    return _code(error) in AUTH_CODES


def is_network_error(error: Any) -> bool:
    return _code(error) in NETWORK_CODES


def is_server_error(error: Any) -> bool:
    return _code(error) in SERVER_CODES


def categorize(error: Any) -> Category | None:
    code = _code(error)
    for category, codes in CATEGORY_CODES.items():
        if code in codes:
            return category
    return None
