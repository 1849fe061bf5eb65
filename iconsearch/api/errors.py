"""Mapping of error codes to HTTP responses."""

from fastapi.responses import JSONResponse

from iconsearch.exceptions import ErrorCode, IconSearchError
from iconsearch.logging_config import get_logger

logger = get_logger(__name__)


def get_status_code(error_code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    # Validation errors -> 400
    if error_code in (ErrorCode.VALIDATION_ERROR, ErrorCode.TAG_EXISTS):
        return 400

    # Access errors -> 403
    if error_code in (ErrorCode.ACCESS_DENIED,):
        return 403

    # Not found errors -> 404
    if error_code in (ErrorCode.ICON_NOT_FOUND, ErrorCode.VECTOR_NOT_FOUND):
        return 404

    # Conflict errors -> 409
    if error_code in (ErrorCode.DIMENSION_MISMATCH,):
        return 409

    # Timeout -> 504
    if error_code in (ErrorCode.TIMEOUT,):
        return 504

    # Default to 500 for internal errors
    return 500


def relay_error(exc: IconSearchError) -> JSONResponse:
    """Relay routes answer failures as ``{success: false, error}``."""
    logger.error(
        f"Vector store relay failed: {exc.message}",
        extra={"error_code": exc.code.value, "details": exc.details},
    )
    return JSONResponse(
        status_code=get_status_code(exc.code),
        content={"success": False, "error": exc.message, "code": exc.code.value},
    )
