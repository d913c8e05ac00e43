from __future__ import annotations

import itertools

import pytest

from unifault.client.categories import (
    AUTH_CODES,
    CATEGORY_CODES,
    SERVER_CODES,
    Category,
    categorize,
    is_auth_error,
    is_network_error,
    is_server_error,
    is_validation_error,
)
from unifault.core.codes import ErrorCode, status_for
from unifault.core.errors import CanonicalError


def test_categories_are_disjoint() -> None:
    for a, b in itertools.combinations(CATEGORY_CODES.values(), 2):
        assert not a & b


def test_server_codes_are_server_statuses() -> None:
    assert all(status_for(code) >= 500 for code in SERVER_CODES)


def test_auth_codes_are_401() -> None:
    assert {status_for(code) for code in AUTH_CODES} == {401}


@pytest.mark.parametrize(
    ("value", "category"),
    [
        (ErrorCode.SCHEMA_VALIDATION_ERROR, Category.VALIDATION),
        ("TOKEN_EXPIRED", Category.AUTH),
        ({"code": "OFFLINE"}, Category.NETWORK),
        (CanonicalError(code=ErrorCode.DATABASE_ERROR, message="x"), Category.SERVER),
        ("CONFLICT", None),
        ("NOT_A_CODE", None),
        (None, None),
    ],
)
def test_categorize(value, category) -> None:  # noqa: ANN001
    assert categorize(value) is category


def test_predicates() -> None:
    assert is_validation_error("CAST_ERROR")
    assert is_auth_error(ErrorCode.INVALID_TOKEN)
    assert is_network_error({"code": "DNS_ERROR"})
    assert is_server_error("CONNECTION_ERROR")
    assert not is_server_error("TIMEOUT_ERROR")
    assert not is_network_error("CONNECTION_ERROR")
