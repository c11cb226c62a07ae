"""
Blog API — Custom Exception Hierarchy
=======================================

What:  Application-specific exceptions, each carrying its HTTP status and
       machine-readable error code.
How:   Services and handlers raise these; the dispatcher is the single place
       that turns them into JSON error envelopes (see `routing/dispatcher.py`).
Who:   Raised by services, handlers and route middleware.

Exception Hierarchy:
    BlogAPIError (base)                       → 500 SERVER_ERROR
    ├── BadRequestError                       → 400 BAD_REQUEST
    ├── ValidationError                       → 422 VALIDATION_ERROR
    ├── UnauthorizedError                     → 401 UNAUTHORIZED
    ├── ForbiddenError                        → 403 FORBIDDEN
    ├── NotFoundError                         → 404 NOT_FOUND
    ├── DatabaseError                         → 500 SERVER_ERROR
    ├── UploadError
    │   ├── UploadTransportError              → 400 UPLOAD_FAILED
    │   ├── FileTooLarge                      → 422 FILE_TOO_LARGE
    │   ├── ExtensionNotAllowed               → 422 EXTENSION_NOT_ALLOWED
    │   ├── UnsupportedMimeType               → 422 UNSUPPORTED_MIME_TYPE
    │   ├── DecodeError                       → 422 IMAGE_DECODE_ERROR
    │   ├── StorageWriteError                 → 500 STORAGE_WRITE_ERROR
    │   └── EncodeError                       → 500 IMAGE_ENCODE_ERROR
    └── AuthenticationError                   → 401 UNAUTHORIZED
        ├── TokenMissing
        ├── TokenExpired
        ├── SignatureInvalid
        ├── MalformedPayload
        └── IssuerMismatch

RouteConfigurationError is not an HTTP error: it is raised while the route
table is being built and stops the process from starting.
"""

from typing import Any, Dict, List, Optional


class BlogAPIError(Exception):
    """
    Base exception for all blog API errors.

    Attributes:
        message:  User-facing error description (safe to return in a response)
        context:  Debug info for server-side logs (never returned to clients)
        details:  Structured, client-safe details placed in `error.details`
    """

    status_code: int = 500
    code: Optional[str] = "SERVER_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)


class BadRequestError(BlogAPIError):
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request", **kwargs: Any):
        super().__init__(message=message, **kwargs)


class ValidationError(BlogAPIError):
    """
    Client input failed validation.

    `errors` maps a field name to its list of messages and becomes
    `error.details` in the response:

        {"success": false,
         "error": {"message": "Validation failed",
                   "code": "VALIDATION_ERROR",
                   "details": {"title": ["Title is required"]}}}
    """

    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        errors: Optional[Dict[str, List[str]]] = None,
        message: str = "Validation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.errors = errors or {}
        super().__init__(message=message, details=self.errors, context=context)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


class UnauthorizedError(BlogAPIError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", **kwargs: Any):
        super().__init__(message=message, **kwargs)


class ForbiddenError(BlogAPIError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden", **kwargs: Any):
        super().__init__(message=message, **kwargs)


class NotFoundError(BlogAPIError):
    """
    A requested resource does not exist.

    Services convert `None` lookups into this so handlers never build 404s by hand.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
    ):
        ctx: Dict[str, Any] = {"resource": resource}
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message or f"{resource} not found", context=ctx)


class DatabaseError(BlogAPIError):
    """
    A database operation failed unexpectedly.

    The client always sees a generic message; the original error text is kept
    in `context` for the server log only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ── Upload pipeline ───────────────────────────────────────────────────────


class UploadError(BlogAPIError):
    """Base class for every failure of the image ingestion pipeline."""

    status_code = 422
    code = "UPLOAD_ERROR"

    def __init__(self, message: str = "Upload failed", **kwargs: Any):
        super().__init__(message=message, **kwargs)


class UploadTransportError(UploadError):
    """The transport reported a failed upload (partial body, no temp dir...)."""

    status_code = 400
    code = "UPLOAD_FAILED"


class FileTooLarge(UploadError):
    code = "FILE_TOO_LARGE"


class ExtensionNotAllowed(UploadError):
    code = "EXTENSION_NOT_ALLOWED"


class UnsupportedMimeType(UploadError):
    code = "UNSUPPORTED_MIME_TYPE"


class DecodeError(UploadError):
    """Pixel dimensions could not be read: corrupt or unrecognized payload."""

    code = "IMAGE_DECODE_ERROR"


class StorageWriteError(UploadError):
    status_code = 500
    code = "STORAGE_WRITE_ERROR"


class EncodeError(UploadError):
    """Writing the resized image or thumbnail failed."""

    status_code = 500
    code = "IMAGE_ENCODE_ERROR"


# ── Authentication ────────────────────────────────────────────────────────


class AuthenticationError(BlogAPIError):
    """
    Bearer token rejected.

    `public_message` is the short text sent to clients; `reason` is the
    specific cause, surfaced only in development.
    """

    status_code = 401
    code = "UNAUTHORIZED"
    public_message = "Authentication failed"

    def __init__(self, reason: str = "Authentication failed", **kwargs: Any):
        self.reason = reason
        super().__init__(message=self.public_message, **kwargs)


class TokenMissing(AuthenticationError):
    public_message = "Authentication token required"


class TokenExpired(AuthenticationError):
    public_message = "Token has expired"


class SignatureInvalid(AuthenticationError):
    public_message = "Invalid token signature"


class MalformedPayload(AuthenticationError):
    public_message = "Invalid or expired token"


class IssuerMismatch(AuthenticationError):
    public_message = "Invalid or expired token"


# ── Startup ───────────────────────────────────────────────────────────────


class RouteConfigurationError(Exception):
    """A route template or registration is invalid; raised only at startup."""
