from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from unifault.core.codes import ErrorCode, coerce_code


FALLBACK_MESSAGE = "An unexpected error occurred. Please try again."

DEFAULT_UI_MESSAGES: Mapping[ErrorCode, str] = MappingProxyType(
    {
        # Generic
        ErrorCode.INTERNAL_SERVER_ERROR: "Something went wrong on our end. Please try again later.",
        ErrorCode.UNKNOWN_ERROR: FALLBACK_MESSAGE,
        # Validation
        ErrorCode.VALIDATION_ERROR: "Please check your input and try again.",
        ErrorCode.INVALID_INPUT: "Invalid input provided. Please try again.",
        ErrorCode.MISSING_REQUIRED_FIELD: "Please fill in all required fields.",
        # Authentication
        ErrorCode.UNAUTHORIZED: "You need to sign in to continue.",
        ErrorCode.AUTH_FAILED: "Authentication failed. Please try again.",
        ErrorCode.INVALID_CREDENTIALS: "Invalid username or password. Please try again.",
        ErrorCode.INVALID_TOKEN: "Your session is invalid. Please sign in again.",
        ErrorCode.TOKEN_EXPIRED: "Your session has expired. Please sign in again.",
        # Authorization
        ErrorCode.FORBIDDEN: "You don't have permission to perform this action.",
        ErrorCode.INSUFFICIENT_PERMISSIONS: (
            "Insufficient permissions. Contact support if you believe this is an error."
        ),
        # Resource
        ErrorCode.NOT_FOUND: "Resource not found. It may have been deleted.",
        ErrorCode.RESOURCE_NOT_FOUND: "The requested resource doesn't exist.",
        # Storage
        ErrorCode.DATABASE_ERROR: "A database error occurred. Please try again later.",
        ErrorCode.DUPLICATE_KEY: "This item already exists. Please use a different value.",
        ErrorCode.CAST_ERROR: "Invalid data format. Please check your input.",
        ErrorCode.SCHEMA_VALIDATION_ERROR: "Data validation failed. Please check your input.",
        ErrorCode.CONNECTION_ERROR: "Database connection failed. Please try again later.",
        # External services
        ErrorCode.EXTERNAL_API_ERROR: "External service error. Please try again later.",
        ErrorCode.PAYMENT_ERROR: (
            "Payment processing failed. Please try again or use a different method."
        ),
        ErrorCode.EMAIL_ERROR: "Email service unavailable. Please try again later.",
        ErrorCode.THIRD_PARTY_ERROR: "Third-party service error. Please try again later.",
        # Network
        ErrorCode.NETWORK_ERROR: "Network error. Please check your connection.",
        ErrorCode.TIMEOUT_ERROR: "Request timed out. Please try again.",
        ErrorCode.DNS_ERROR: "Connection failed. Please check your internet.",
        ErrorCode.OFFLINE: "You're offline. Please check your internet connection.",
        # File operations
        ErrorCode.FILE_UPLOAD_ERROR: "File upload failed. Please try again.",
        ErrorCode.FILE_SIZE_EXCEEDED: "File is too large. Please upload a smaller file.",
        ErrorCode.INVALID_FILE_TYPE: "Invalid file type. Please upload a supported format.",
        # Presentation runtime
        ErrorCode.CHUNK_LOAD_ERROR: (
            "Failed to load application resources. Please refresh the page."
        ),
        ErrorCode.BUILD_ERROR: "Application error. Please refresh the page.",
        ErrorCode.RUNTIME_ERROR: "Application encountered an error. Please refresh the page.",
        ErrorCode.UI_CRASH: "Application crashed. Please refresh the page.",
        # Business logic
        ErrorCode.BUSINESS_LOGIC_ERROR: (
            "Operation failed. Please check your input and try again."
        ),
        ErrorCode.OPERATION_FAILED: "Operation failed. Please try again.",
        ErrorCode.CONFLICT: (
            "Action conflicts with current state. Please refresh and try again."
        ),
    }
)


class MessageCatalog:
    """User-facing text per error code.

    One instance is built at startup and passed to presentation code.
    Overrides should be registered before traffic starts; ``reset_to_defaults``
    exists for test isolation.
    """

    def __init__(
        self,
        overrides: Mapping[ErrorCode | str, str] | None = None,
        *,
        fallback: str = FALLBACK_MESSAGE,
    ) -> None:
        self._fallback = fallback
        self._overrides: dict[ErrorCode | str, str] = {}
        if overrides:
            self.register_overrides(overrides)

    def get_message(self, code: ErrorCode | str | None) -> str:
        key = coerce_code(code) or code
        if key is None:
            return self._fallback
        return self._overrides.get(key) or DEFAULT_UI_MESSAGES.get(key) or self._fallback

    def register_overrides(self, messages: Mapping[ErrorCode | str, str]) -> None:
        merged = dict(self._overrides)
        for code, text in messages.items():
            if text:
                merged[coerce_code(code) or code] = text
        self._overrides = merged

    def reset_to_defaults(self) -> None:
        self._overrides = {}

    def all_messages(self) -> dict[ErrorCode | str, str]:
        return {**DEFAULT_UI_MESSAGES, **self._overrides}
