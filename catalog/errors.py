"""
Error taxonomy for the book review service and translation of
store, token and validation failures into (status, message) pairs.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from bson.errors import InvalidId
from fastapi.exceptions import RequestValidationError
from pymongo.errors import DuplicateKeyError


class ErrorKind(str, Enum):
    """Kinds of failure surfaced to API callers."""
    VALIDATION_FAILED = "validation_failed"
    DUPLICATE_KEY = "duplicate_key"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    FORBIDDEN = "forbidden"
    INVALID_QUERY = "invalid_query"
    SERVER_ERROR = "server_error"


class CatalogError(Exception):
    """Base class for failures raised by the domain layer."""

    kind: ErrorKind = ErrorKind.SERVER_ERROR
    status_code: int = 500
    default_message: str = "Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(CatalogError):
    kind = ErrorKind.VALIDATION_FAILED
    status_code = 400
    default_message = "Validation failed"


class DuplicateKey(CatalogError):
    kind = ErrorKind.DUPLICATE_KEY
    status_code = 400
    default_message = "Duplicate field value entered"


class AlreadyReviewed(DuplicateKey):
    default_message = "You have already reviewed this book"


class NotFound(CatalogError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Resource not found"


class Unauthenticated(CatalogError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401
    default_message = "Access denied. No token provided or invalid format."


class InvalidToken(CatalogError):
    kind = ErrorKind.INVALID_TOKEN
    status_code = 401
    default_message = "Invalid token."


class TokenExpired(CatalogError):
    kind = ErrorKind.TOKEN_EXPIRED
    status_code = 401
    default_message = "Token expired."


class Forbidden(CatalogError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "You are not allowed to perform this action"


class InvalidQuery(CatalogError):
    kind = ErrorKind.INVALID_QUERY
    status_code = 400
    default_message = "Search query is required"


# Unique index fields mapped to their user-facing duplicate message
DUPLICATE_KEY_MESSAGES = {
    frozenset({"email"}): "Email already exists",
    frozenset({"isbn"}): "ISBN already exists",
    frozenset({"user", "book"}): AlreadyReviewed.default_message,
}


def _duplicate_fields(exc: DuplicateKeyError) -> frozenset:
    details: Mapping[str, Any] = exc.details or {}
    key = details.get("keyPattern") or details.get("keyValue") or {}
    return frozenset(key.keys())


def _format_validation_errors(errors: Iterable[Dict[str, Any]]) -> str:
    messages = []
    for error in errors:
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        # Request validation locations start with body/query/path
        loc = [str(part) for part in error.get("loc", ())]
        location = [part for part in loc if part not in ("body", "query", "path")] or loc[-1:]
        if location:
            message = f"{'.'.join(location)}: {message}"
        messages.append(message)
    return ", ".join(messages) or ValidationFailed.default_message


def classify_error(exc: Exception) -> CatalogError:
    """
    Map any failure onto the domain taxonomy.

    Args:
        exc: Exception raised while handling a request

    Returns:
        CatalogError describing the failure
    """
    if isinstance(exc, CatalogError):
        return exc

    if isinstance(exc, DuplicateKeyError):
        fields = _duplicate_fields(exc)
        message = DUPLICATE_KEY_MESSAGES.get(fields, DuplicateKey.default_message)
        if fields == frozenset({"user", "book"}):
            return AlreadyReviewed(message)
        return DuplicateKey(message)

    # Only request input counts as a validation failure; internal model errors are server faults
    if isinstance(exc, RequestValidationError):
        return ValidationFailed(_format_validation_errors(exc.errors()))

    if isinstance(exc, InvalidId):
        return NotFound("Resource not found")

    return CatalogError()


def translate_error(exc: Exception) -> Tuple[int, str]:
    """
    Translate a failure into the HTTP status and message shown to the caller.

    Args:
        exc: Exception raised while handling a request

    Returns:
        Tuple of (http status code, human-readable message)
    """
    error = classify_error(exc)
    return error.status_code, error.message
