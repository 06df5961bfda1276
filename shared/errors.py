"""
Shared error handling for the Clips service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    code: str
    message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ClipServiceException(Exception):
    """Base exception for the Clips service."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 description: Optional[str] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        self.description = description
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.message,
            code=self.code,
            message=self.description,
            details=self.details
        )


class ValidationError(ClipServiceException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ClipNotFoundError(ClipServiceException):
    """Clip is missing, expired, locked by a password, or exhausted.

    All cases share one response so callers cannot tell whether a
    password-protected clip exists.
    """

    status_code = 404

    def __init__(
        self,
        description: str = "The clip may have expired, been deleted, or the token is invalid.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("CLIP_NOT_FOUND", "Clip not found", details, description=description)


class DurableTierError(ClipServiceException):
    """Durable tier (Redis) could not be reached."""

    status_code = 503

    def __init__(self, message: str = "Durable tier unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("DURABLE_TIER_ERROR", message, details)
