from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from unifault.core.codes import ErrorCode
from unifault.core.errors import CanonicalError
from unifault.services.shapes import flatten_issue


def from_issues(issues: Iterable[Any], message: str = "Validation failed") -> CanonicalError:
    """Build a VALIDATION_ERROR from ``{path, message, code?}`` issues (or pydantic ``loc``/``msg``)."""

    return CanonicalError(
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        details={"issues": [flatten_issue(i) for i in issues]},
    )


def from_field_errors(errors: Mapping[str, str]) -> CanonicalError:
    return CanonicalError(
        code=ErrorCode.VALIDATION_ERROR,
        message="Validation failed",
        details={
            "issues": [{"path": field, "message": message} for field, message in errors.items()]
        },
    )


def missing_field(field_name: str) -> CanonicalError:
    return CanonicalError(
        code=ErrorCode.MISSING_REQUIRED_FIELD,
        message=f"{field_name} is required",
        details={"field": field_name},
    )


def invalid_input(message: str, details: Mapping[str, Any] | None = None) -> CanonicalError:
    return CanonicalError(code=ErrorCode.INVALID_INPUT, message=message, details=details)
