"""
Civil Registry Backend - Custom Exception Hierarchy
====================================================

What:  Application-specific exceptions for each failure class.
How:   Each exception carries a human-readable message, the underlying
       fault's text (if any), a context dict for logs, and the HTTP status
       it maps to. Global handlers registered in main.py turn them into the
       response envelope:

           {"success": false, "message": ..., "error": ..., "requestId": ...}

Who:   Raised by services; caught by the handlers in main.py.

Exception Hierarchy:
    RegistryError (base)
    ├── ValidationError       → 400 Bad Request
    ├── NotFoundError         → 404 Not Found
    ├── FormatError           → 400 Bad Request
    ├── InfrastructureError   → 500 (400 for create/update)
    └── FileStorageError      → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """
    Base exception for all registry errors.

    Attributes:
        message:      User-facing description, returned as `message`
        error:        Text of the underlying fault, returned as `error`
        context:      Debug info, logged server-side only
        status_code:  HTTP status the global handler responds with
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.error = error
        self.context = context or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(RegistryError):
    """
    Raised when client input fails presence or schema checks.

    HTTP: 400 Bad Request

    Two shapes are produced:
        Missing required fields on create:
            {"message": "Missing required fields",
             "missingFields": {"firstName": false, "gender": true, ...}}
        Schema failure (type, enum, blank value):
            {"message": "Validation error", "error": "...",
             "details": [{"field": "gender", "message": "..."}]}
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation error",
        error: Optional[str] = None,
        missing_fields: Optional[Dict[str, bool]] = None,
        details: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, error=error, context=context)
        self.missing_fields = missing_fields
        self.details = details


class NotFoundError(RegistryError):
    """
    Raised when no record exists for an identifier.

    HTTP: 404 Not Found

    Malformed identifiers also raise this: a key that cannot be parsed
    cannot exist in the store.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "Resident",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)


class FormatError(RegistryError):
    """
    Raised when a request body has the wrong overall shape.

    HTTP: 400 Bad Request
    When: Import payload whose `residents` member is not an array.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid data format",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InfrastructureError(RegistryError):
    """
    Raised when the store or the QR encoder fails during an operation.

    HTTP: 500 by default. Create and update report these as 400, so the
    status is chosen by the raising operation.

    The underlying fault's message is carried in `error` and returned to
    the client; the exception type name goes to the logs via `context`.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        error: Optional[str] = None,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, error=error, context=context, status_code=status_code
        )


class FileStorageError(RegistryError):
    """
    Raised when the backup directory or an export file cannot be written.

    HTTP: 500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, error=error, context=context)
