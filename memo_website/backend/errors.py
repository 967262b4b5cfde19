"""JSON error bodies shared by every endpoint: {"error": <message>, "code": <CODE>}."""

from enum import Enum
from typing import Dict, Tuple, Type

from fastapi.responses import JSONResponse

from .domain import AuthError, ConflictError, MemoAppError, NotFoundError, ValidationError


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Most specific first; MemoAppError itself falls through to a 400
ERROR_STATUS: Dict[Type[MemoAppError], Tuple[ErrorCode, int]] = {
    AuthError: (ErrorCode.UNAUTHORIZED, 401),
    NotFoundError: (ErrorCode.NOT_FOUND, 404),
    ValidationError: (ErrorCode.VALIDATION_ERROR, 400),
    ConflictError: (ErrorCode.CONFLICT, 409),
}

STATUS_CODES: Dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def error_response(code: ErrorCode, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "code": code.value})


def for_app_error(exc: MemoAppError) -> JSONResponse:
    for error_type, (code, status_code) in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return error_response(code, str(exc), status_code)
    return error_response(ErrorCode.VALIDATION_ERROR, str(exc), 400)


def for_status(status_code: int, message: str) -> JSONResponse:
    """Map a bare HTTP status (from HTTPException or routing) onto the error shape."""
    code = STATUS_CODES.get(status_code, ErrorCode.INTERNAL_ERROR if status_code >= 500 else ErrorCode.BAD_REQUEST)
    return error_response(code, message, status_code)


def internal_error() -> JSONResponse:
    """Generic 500. Details are logged server-side, never returned."""
    return error_response(ErrorCode.INTERNAL_ERROR, "Internal server error", 500)
