"""
Error taxonomy for the submission and upload handlers.

Every error carries the HTTP status and the client-facing message. The
application registers a single exception handler that renders them as the
JSON envelope ``{"error": ..., "details": [...]}``.
"""

from typing import Dict, List, Optional


class GatewayError(Exception):
    """Base class for errors rendered as a JSON error envelope."""
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[List[str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        content = {"error": self.message}
        if self.details is not None:
            content["details"] = list(self.details)
        return content


class ValidationError(GatewayError):
    """Client-fixable payload problems. Carries the full list of violations."""
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, details: List[str], message: Optional[str] = None):
        super().__init__(message=message, details=details)


class BadRequestError(GatewayError):
    status_code = 400
    default_message = "Bad request"


class MethodNotAllowedError(GatewayError):
    status_code = 405
    default_message = "Method not allowed"


class RateLimitError(GatewayError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(
            message=message,
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Remaining": "0",
            },
        )


class AuthenticationError(GatewayError):
    status_code = 401
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(GatewayError):
    status_code = 403
    default_message = "Insufficient privileges"


class ContentIntegrityError(GatewayError):
    """Declared content type does not match the bytes actually uploaded."""
    status_code = 400
    default_message = "File content does not match declared type. Possible security risk detected."


class PersistenceError(GatewayError):
    """The relational store or object store failed. Detail stays in the server log."""
    status_code = 500
    default_message = "Failed to save your submission. Please try again."
