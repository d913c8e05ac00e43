"""Structured failure shapes recognised by the normalizer.

Each shape is a check (does the value carry fields X, Y, Z with the right
runtime types) paired with an extractor that builds the canonical error.
Checks look at fields, never at which library produced the value, so a
mapping decoded from JSON and an exception object carrying the same
attributes are classified the same way.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from unifault.core.codes import ErrorCode, coerce_code
from unifault.core.errors import CanonicalError, ErrorContext


_MISSING = object()

DRIVER_MARKERS = ("orig", "driver", "driver_error", "driverError")


def read(value: Any, *names: str, default: Any = None) -> Any:
    """Return the first present field among *names* (mapping key or attribute)."""

    for name in names:
        if isinstance(value, Mapping):
            if name in value:
                return value[name]
            continue
        attr = getattr(value, name, _MISSING)
        if attr is not _MISSING:
            return attr
    return default


def has_field(value: Any, name: str) -> bool:
    return read(value, name, default=_MISSING) is not _MISSING


def message_of(value: Any, default: str) -> str:
    for name in ("message", "msg", "detail"):
        candidate = read(value, name)
        if isinstance(candidate, str) and candidate:
            return candidate
    if isinstance(value, BaseException):
        text = str(value)
        if text:
            return text
    return default


def name_of(value: Any) -> str | None:
    name = read(value, "name")
    if isinstance(name, str) and name:
        return name
    if isinstance(value, BaseException):
        return type(value).__name__
    return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def flatten_path(path: Any) -> str:
    if isinstance(path, str):
        return path
    if _is_sequence(path):
        return ".".join(str(part) for part in path)
    if path is None:
        return ""
    return str(path)


def flatten_issue(issue: Any) -> dict[str, Any]:
    flat: dict[str, Any] = {
        "path": flatten_path(read(issue, "path", "loc")),
        "message": str(read(issue, "message", "msg", default="")),
    }
    code = read(issue, "code", "type")
    if code is not None:
        flat["code"] = code
    return flat


def _looks_like_issue(issue: Any) -> bool:
    return (has_field(issue, "path") or has_field(issue, "loc")) and (
        has_field(issue, "message") or has_field(issue, "msg")
    )


@dataclasses.dataclass(frozen=True, slots=True)
class Shape:
    name: str
    matches: Callable[[Any], bool]
    extract: Callable[[Any, ErrorContext | None], CanonicalError]
    # False: exceptions skip this shape in the structured pass.
    exceptions: bool = True


# a. validation library: list of {path, message, code?} issues


def _issue_list(value: Any) -> list[Any] | None:
    for name in ("errors", "issues"):
        raw = read(value, name)
        if callable(raw) and not isinstance(raw, Mapping):
            # pydantic style: errors() returns the issue list
            try:
                raw = raw()
            except TypeError:
                continue
        if _is_sequence(raw) and all(_looks_like_issue(i) for i in raw):
            return list(raw)
    return None


def matches_validation_issues(value: Any) -> bool:
    return _issue_list(value) is not None


def extract_validation_issues(value: Any, context: ErrorContext | None) -> CanonicalError:
    issues = _issue_list(value) or []
    return CanonicalError(
        code=ErrorCode.VALIDATION_ERROR,
        message="Validation failed",
        details={"issues": [flatten_issue(i) for i in issues]},
        context=context,
    )


# b. alternate validation shape: original-input marker plus a details list


def matches_validation_details(value: Any) -> bool:
    details = read(value, "details")
    return (
        has_field(value, "_original")
        and _is_sequence(details)
        and all(_looks_like_issue(i) for i in details)
    )


def extract_validation_details(value: Any, context: ErrorContext | None) -> CanonicalError:
    return CanonicalError(
        code=ErrorCode.VALIDATION_ERROR,
        message=message_of(value, "Validation failed"),
        details={"issues": [flatten_issue(i) for i in read(value, "details")]},
        context=context,
    )


# c. document store duplicate key


_DUPLICATE_KEY_CODES = (11000, 11001)


def _key_pattern(value: Any) -> Mapping[str, Any] | None:
    for source in (value, read(value, "details")):
        if source is None:
            continue
        pattern = read(source, "keyPattern", "key_pattern")
        if isinstance(pattern, Mapping) and pattern:
            return pattern
    return None


def _key_value(value: Any) -> Mapping[str, Any]:
    for source in (value, read(value, "details")):
        if source is None:
            continue
        kv = read(source, "keyValue", "key_value")
        if isinstance(kv, Mapping):
            return kv
    return {}


def matches_duplicate_key(value: Any) -> bool:
    code = read(value, "code")
    return _is_int(code) and code in _DUPLICATE_KEY_CODES and _key_pattern(value) is not None


def extract_duplicate_key(value: Any, context: ErrorContext | None) -> CanonicalError:
    field = str(next(iter(_key_pattern(value) or {"field": 1})))
    return CanonicalError(
        code=ErrorCode.DUPLICATE_KEY,
        message=f"{field} already exists",
        details={"field": field, "value": _key_value(value).get(field)},
        context=context,
    )


# d. document store cast failure


def matches_cast_error(value: Any) -> bool:
    return name_of(value) == "CastError"


def extract_cast_error(value: Any, context: ErrorContext | None) -> CanonicalError:
    kind = read(value, "kind") or "value"
    bad = read(value, "value")
    return CanonicalError(
        code=ErrorCode.CAST_ERROR,
        message=f"Invalid {kind}: {bad}",
        details={"path": read(value, "path"), "value": bad, "kind": read(value, "kind")},
        context=context,
    )


# e. document store schema validation


def matches_schema_validation(value: Any) -> bool:
    return name_of(value) == "ValidationError" and isinstance(read(value, "errors"), Mapping)


def extract_schema_validation(value: Any, context: ErrorContext | None) -> CanonicalError:
    errors = {
        str(field): message_of(err, str(err)) for field, err in read(value, "errors").items()
    }
    return CanonicalError(
        code=ErrorCode.SCHEMA_VALIDATION_ERROR,
        message="Document validation failed",
        details={"errors": errors},
        context=context,
    )


# f. document store optimistic lock


def matches_version_conflict(value: Any) -> bool:
    return name_of(value) == "VersionError"


def extract_version_conflict(value: Any, context: ErrorContext | None) -> CanonicalError:
    expected = read(value, "expectedVersion", "expected_version")
    return CanonicalError(
        code=ErrorCode.CONFLICT,
        message="Document was modified. Please reload and try again.",
        details={"expectedVersion": expected} if expected is not None else None,
        context=context,
    )


# g. relational / ORM known fault with a short machine code


_PRISMA_CODE = re.compile(r"^P\d{4}$")
_MACHINE_CODES: dict[str, ErrorCode] = {
    "P2002": ErrorCode.DUPLICATE_KEY,
    "P2025": ErrorCode.RESOURCE_NOT_FOUND,
    "P2003": ErrorCode.CONFLICT,
    # SQLSTATE
    "23505": ErrorCode.DUPLICATE_KEY,
    "23503": ErrorCode.CONFLICT,
}

_KEY_FIELD = re.compile(r"Key \((.*?)\)")
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?:[\w\"]+\.)?([\w\"]+)", re.IGNORECASE)
_PLACEHOLDER_FIELD = "field"


def _machine_code(value: Any) -> str | None:
    code = read(value, "code")
    if isinstance(code, str) and _PRISMA_CODE.match(code) and code in _MACHINE_CODES:
        return code
    for source in (value, read(value, "orig")):
        if source is None:
            continue
        state = read(source, "pgcode", "sqlstate")
        if isinstance(state, str) and state in _MACHINE_CODES:
            return state
    return None


def field_from_message(message: str) -> str | None:
    for pattern in (_KEY_FIELD, _SQLITE_UNIQUE):
        match = pattern.search(message)
        if match and match.group(1):
            return match.group(1).strip('"')
    return None


def matches_relational_code(value: Any) -> bool:
    return _machine_code(value) is not None


def extract_relational_code(value: Any, context: ErrorContext | None) -> CanonicalError:
    machine = _machine_code(value) or ""
    code = _MACHINE_CODES[machine]
    meta = read(value, "meta")
    if code is ErrorCode.DUPLICATE_KEY:
        target = read(meta, "target") if meta is not None else None
        if _is_sequence(target) and target:
            field = str(target[0])
        elif isinstance(target, str) and target:
            field = target
        else:
            field = field_from_message(message_of(value, "")) or _PLACEHOLDER_FIELD
        return CanonicalError(
            code=code,
            message=f"{field} already exists",
            details={"field": field, "target": target},
            context=context,
        )
    if code is ErrorCode.RESOURCE_NOT_FOUND:
        return CanonicalError(code=code, message="Record not found", details=meta, context=context)
    return CanonicalError(
        code=code,
        message="Invalid foreign key reference",
        details=meta if meta is not None else {"message": message_of(value, "")},
        context=context,
    )


# h. relational text fallback


_DUPLICATE_WORDING = ("duplicate key", "duplicate entry", "unique constraint")
_REFUSED_WORDING = ("econnrefused", "connection refused")


def _relational_candidate(value: Any) -> bool:
    if not isinstance(value, BaseException):
        return True
    return any(has_field(value, marker) for marker in DRIVER_MARKERS)


def matches_relational_text(value: Any) -> bool:
    if not _relational_candidate(value):
        return False
    text = message_of(value, "").lower()
    return any(w in text for w in _DUPLICATE_WORDING + _REFUSED_WORDING)


def extract_relational_text(value: Any, context: ErrorContext | None) -> CanonicalError:
    message = message_of(value, "")
    lowered = message.lower()
    if any(w in lowered for w in _DUPLICATE_WORDING):
        field = field_from_message(message) or _PLACEHOLDER_FIELD
        return CanonicalError(
            code=ErrorCode.DUPLICATE_KEY,
            message=f"{field} already exists",
            details={"field": field},
            context=context,
        )
    return CanonicalError(
        code=ErrorCode.CONNECTION_ERROR,
        message="Database connection failed",
        details={"message": message},
        context=context,
    )


# i. HTTP-like. Exceptions only reach it after the native keyword table.


def _http_status(value: Any) -> int | None:
    # JSend-style bodies use a string "status"; keep looking for a numeric one.
    for name in ("status", "statusCode", "status_code"):
        status = read(value, name)
        if _is_int(status):
            return status
    return None


def matches_http_like(value: Any) -> bool:
    return _http_status(value) is not None


def extract_http_like(value: Any, context: ErrorContext | None) -> CanonicalError:
    code = coerce_code(read(value, "code")) or ErrorCode.INTERNAL_SERVER_ERROR
    return CanonicalError(
        code=code,
        message=message_of(value, "An error occurred"),
        details=read(value, "details", "data"),
        context=context,
    )


# j. fallback


def describe(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value
    if _is_sequence(value) or isinstance(value, (set, frozenset)):
        return list(value)
    attrs = getattr(value, "__dict__", None)
    if isinstance(attrs, dict) and attrs:
        return {"type": type(value).__name__, **attrs}
    return {"type": type(value).__name__, "repr": repr(value)}


def matches_any(value: Any) -> bool:
    return True


def extract_unknown(value: Any, context: ErrorContext | None) -> CanonicalError:
    return CanonicalError(
        code=ErrorCode.UNKNOWN_ERROR,
        message=message_of(value, "An unknown error occurred"),
        details=describe(value),
        context=context,
    )


SHAPES: tuple[Shape, ...] = (
    Shape("validation_issues", matches_validation_issues, extract_validation_issues),
    Shape("validation_details", matches_validation_details, extract_validation_details),
    Shape("duplicate_key", matches_duplicate_key, extract_duplicate_key),
    Shape("cast_error", matches_cast_error, extract_cast_error),
    Shape("schema_validation", matches_schema_validation, extract_schema_validation),
    Shape("version_conflict", matches_version_conflict, extract_version_conflict),
    Shape("relational_code", matches_relational_code, extract_relational_code),
    Shape("relational_text", matches_relational_text, extract_relational_text),
    Shape("http_like", matches_http_like, extract_http_like, exceptions=False),
    Shape("unknown", matches_any, extract_unknown, exceptions=False),
)
