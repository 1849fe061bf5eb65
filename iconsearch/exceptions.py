"""Application exception hierarchy.

All custom exceptions inherit from IconSearchError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "ICN-1000"
    CONFIGURATION_ERROR = "ICN-1001"
    VALIDATION_ERROR = "ICN-1002"
    TIMEOUT = "ICN-1003"

    # Catalog errors (2xxx)
    CATALOG_ERROR = "ICN-2000"
    ICON_NOT_FOUND = "ICN-2001"
    TAG_EXISTS = "ICN-2002"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "ICN-3000"
    EMBEDDING_MODEL_UNAVAILABLE = "ICN-3001"

    # Vector store errors (4xxx)
    VECTOR_STORE_ERROR = "ICN-4000"
    VECTOR_NOT_FOUND = "ICN-4001"
    DIMENSION_MISMATCH = "ICN-4002"
    UNSUPPORTED_BACKEND = "ICN-4003"
    RELAY_ERROR = "ICN-4004"

    # Search errors (5xxx)
    SEARCH_ERROR = "ICN-5000"

    # Access errors (6xxx)
    ACCESS_DENIED = "ICN-6000"


class IconSearchError(Exception):
    """Base exception for all icon search errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(IconSearchError):
    """Configuration or environment error.

    Raised at construction time and never swallowed by fallback logic.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ValidationError(IconSearchError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class OperationTimeoutError(IconSearchError):
    """A bounded operation did not finish in time."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.TIMEOUT, details)


class CatalogError(IconSearchError):
    """Icon catalog error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CATALOG_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class EmbeddingError(IconSearchError):
    """Embedding provider error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreError(IconSearchError):
    """Vector store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class SearchError(IconSearchError):
    """Search operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SEARCH_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class AccessDeniedError(IconSearchError):
    """Caller may not perform administrative operations."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.ACCESS_DENIED, details)
