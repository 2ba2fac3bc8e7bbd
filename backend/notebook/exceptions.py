"""
Notebook Backend: Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every error scenario the API reports.
Why:   Services raise domain errors; one boundary handler in main.py turns them
       into JSON responses with the right status code.
How:   Each class carries a message, an optional context dict, an HTTP status
       code and a machine-readable error code.

Exception Hierarchy:
    NotebookError (base)                    → 500
    ├── ValidationError                     → 400 validation_error
    │   ├── PayloadTooLargeError            → 400 payload_too_large
    │   ├── UnsupportedTypeError            → 400 unsupported_type
    │   └── UnextractableContentError       → 400 unextractable_content
    ├── AuthenticationError                 → 401 unauthorized
    ├── ForbiddenError                      → 403 forbidden
    ├── AccessDeniedError                   → 403 access_denied
    ├── NotFoundError                       → 404 not_found
    ├── InvalidStateError                   → 409 invalid_state
    ├── ConfigurationError                  → 500 configuration_error
    ├── UpstreamError                       → 500 upstream_error
    ├── FileStorageError                    → 500 server_error
    └── DatabaseError                       → 500 server_error

Context vs message:
    `message` is safe to show the client. `context` is returned as `details`
    only for 4xx errors; for 5xx errors it is logged server-side and withheld.
"""

from typing import Any, Dict, Optional


class NotebookError(Exception):
    """
    Base exception for all Notebook application errors.

    Attributes:
        message:  User-facing error description
        context:  Additional debug info
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NotebookError):
    """
    Raised when client input fails validation.

    When:    Missing required metadata, malformed semester, blank feedback.
    HTTP:    400 Bad Request
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class PayloadTooLargeError(ValidationError):
    """Upload exceeds the configured size cap."""

    error_code = "payload_too_large"

    def __init__(self, max_size: int, actual_size: int):
        max_mb = max_size / (1024 * 1024)
        super().__init__(
            message=(
                f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds "
                f"maximum of {max_mb:.0f}MB."
            ),
            field="file",
            context={"max_size_mb": max_mb, "actual_size": actual_size},
        )


class UnsupportedTypeError(ValidationError):
    """Upload or stored file has a content type we do not handle."""

    error_code = "unsupported_type"

    def __init__(
        self,
        content_type: Optional[str],
        allowed: Optional[list] = None,
        message: Optional[str] = None,
    ):
        ctx: Dict[str, Any] = {"content_type": content_type}
        if allowed:
            ctx["allowed"] = allowed
        super().__init__(
            message=message or f"File type '{content_type}' is not supported. Only PDF and images allowed.",
            field="file",
            context=ctx,
        )


class UnextractableContentError(ValidationError):
    """
    Raised when a PDF yields no text.

    Usually a scanned, image-only PDF; OCR is not part of the pipeline.
    """

    error_code = "unextractable_content"

    def __init__(self, message: str = "Could not extract text from this PDF. It might be an image-only PDF."):
        super().__init__(message=message, field="noteId")


class AuthenticationError(NotebookError):
    """Missing, malformed or expired bearer token. HTTP 401."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(self, message: str = "Not authorized, token missing or invalid"):
        super().__init__(message=message)


class ForbiddenError(NotebookError):
    """
    Raised when the caller's role does not permit the action.

    HTTP:    403 Forbidden
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AccessDeniedError(NotebookError):
    """A storage reference resolved outside the storage root. HTTP 403."""

    status_code = 403
    error_code = "access_denied"

    def __init__(self, message: str = "Access to the requested file is denied."):
        super().__init__(message=message)


class NotFoundError(NotebookError):
    """
    Raised when a requested resource does not exist.

    Why a custom exception:
        SQLAlchemy returns None for missing records. The service layer converts
        None into NotFoundError so routes stay free of status-code logic.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        if resource_id:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class InvalidStateError(NotebookError):
    """
    Raised when a note request is not in the state an operation requires.

    When:    Approving or rejecting a request that was already reviewed.
    HTTP:    409 Conflict
    """

    status_code = 409
    error_code = "invalid_state"

    def __init__(self, current_status: str, expected_status: str = "pending"):
        super().__init__(
            message=f"Request has already been {current_status}",
            context={"status": current_status, "expected": expected_status},
        )
        self.current_status = current_status


class ConfigurationError(NotebookError):
    """A required secret or setting is missing. HTTP 500."""

    error_code = "configuration_error"

    def __init__(self, message: str = "Server configuration error"):
        super().__init__(message=message)


class UpstreamError(NotebookError):
    """
    Raised when the summarization service fails.

    When:    After retries are exhausted, on timeout, or while the circuit
             breaker is open.
    HTTP:    500
    """

    error_code = "upstream_error"

    def __init__(
        self,
        message: str = "Error generating summary",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class FileStorageError(NotebookError):
    """
    Raised when file storage operations fail.

    When:    Disk full, permission denied, object store unreachable.
    HTTP:    500
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(NotebookError):
    """
    Raised when database operations fail unexpectedly.

    Security Note:
        The message returned to the client is always generic. Query details
        are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
