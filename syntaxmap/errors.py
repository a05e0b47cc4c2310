"""Error taxonomy shared by DAOs, services and routes.

Every failure that should reach a client is raised as an ``AppError``
subclass; ``main.py`` installs a handler that renders it as
``{"success": false, "error": true, "message": ...}``.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None,
                 extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error": True, "message": self.message}
        body.update(self.extra)
        return body


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class ServerError(AppError):
    status_code = 500


# ========== POSTGRES CODE MAPPING ==========
NOT_FOUND_ID = "_1"
BAD_REQUEST = "_2"
NOT_FOUND_EMAIL = "_3"
PROCESSING_ERROR = "_999"

_FIXED_MESSAGES = {
    "42703": (BadRequestError, "Error body request : One field in the request body is missing."),
    "22001": (BadRequestError, "Error body request : One string type field, in the request body, "
                               "outruns the authorized number of characters."),
    "23505": (BadRequestError, "Bad request : Unique key violation."),
    "23503": (BadRequestError, "Bad request : Foreign key violation."),
    "22007": (BadRequestError, "Bad request : Invalid date format."),
    "22008": (BadRequestError, "Bad request : Invalid date format."),
    "22003": (BadRequestError, "Bad request : A numeric value is out of range."),
    "22P01": (BadRequestError, "Bad request : Floating point exception."),
}


def map_error_code(code: Optional[str], item_id: Any = None, email: Optional[str] = None,
                   message: Optional[str] = None, column: Optional[str] = None) -> AppError:
    """Translate an application sentinel or a SQLSTATE into a typed error."""
    if code == NOT_FOUND_ID:
        return NotFoundError(f"Not found : No item with {item_id} as Id found.", code)
    if code == BAD_REQUEST:
        return BadRequestError(f"Bad request : {message}.", code)
    if code == NOT_FOUND_EMAIL:
        return NotFoundError(f"Not found : No item with {email} as email found.", code)
    if code == PROCESSING_ERROR:
        return ServerError(f"Server error : {message or 'Unknown processing error'}.", code)
    if code == "23502":
        return BadRequestError(f"Error body request : The field {column} can't be null.", code)
    if code in _FIXED_MESSAGES:
        error_class, text = _FIXED_MESSAGES[code]
        return error_class(text, code)
    return ServerError("Server error : intern server error.", code)


def map_database_error(exc: Exception) -> AppError:
    pgcode = getattr(exc, "pgcode", None)
    diag = getattr(exc, "diag", None)
    column = getattr(diag, "column_name", None) if diag is not None else None
    error = map_error_code(pgcode, column=column)
    if error.status_code >= 500:
        logger.error(f"Unmapped database error {pgcode}: {exc}")
    return error


def not_found(item_id: Any) -> NotFoundError:
    return map_error_code(NOT_FOUND_ID, item_id=item_id)


def bad_request(message: str) -> BadRequestError:
    return map_error_code(BAD_REQUEST, message=message)
