from __future__ import annotations

import pytest

from unifault.core.codes import (
    HTTP_STATUS_CODES,
    ErrorCode,
    RegistryError,
    coerce_code,
    status_for,
    validate_registry,
)


def test_every_code_has_a_client_or_server_status() -> None:
    assert set(HTTP_STATUS_CODES) == set(ErrorCode)
    for code in ErrorCode:
        assert 400 <= status_for(code) <= 599


def test_known_statuses() -> None:
    assert status_for(ErrorCode.VALIDATION_ERROR) == 422
    assert status_for(ErrorCode.DUPLICATE_KEY) == 409
    assert status_for(ErrorCode.TIMEOUT_ERROR) == 504
    assert status_for(ErrorCode.PAYMENT_ERROR) == 402
    assert status_for("UNAUTHORIZED") == 401


def test_status_for_unregistered_code() -> None:
    with pytest.raises(KeyError):
        status_for("NOT_A_CODE")


def test_coerce_code() -> None:
    assert coerce_code("CONFLICT") is ErrorCode.CONFLICT
    assert coerce_code(ErrorCode.OFFLINE) is ErrorCode.OFFLINE
    assert coerce_code("nope") is None
    assert coerce_code(404) is None


def test_validate_registry_rejects_missing_status() -> None:
    partial = dict(HTTP_STATUS_CODES)
    del partial[ErrorCode.OFFLINE]
    with pytest.raises(RegistryError, match="OFFLINE"):
        validate_registry(ErrorCode, partial)


def test_validate_registry_rejects_non_error_status() -> None:
    broken = dict(HTTP_STATUS_CODES)
    broken[ErrorCode.CONFLICT] = 200
    with pytest.raises(RegistryError):
        validate_registry(ErrorCode, broken)
