"""Exception taxonomy for the recommendation service.

Only input errors (and a missing ownership snapshot) ever reach the caller;
source failures are degraded inside the pipeline and never raised.
"""

from typing import Any, Dict, Optional


class RecoException(Exception):
    """Base exception rendered as a JSON error response."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class UserNotFoundError(RecoException):
    """Raised when the requesting user is unknown."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User '{user_id}' not found.",
            status_code=404,
            details={"user_id": user_id},
        )


class InvalidRequestError(RecoException):
    """Raised for malformed input (missing user id, non-positive limit...)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=422, details=details)


class EventNotFoundError(RecoException):
    """Raised when a click cannot be matched to any served recommendation."""

    def __init__(self, user_id: str, event_id: Optional[str] = None):
        target = f"event '{event_id}'" if event_id else "any recommendation event"
        super().__init__(
            message=f"No {target} found for user '{user_id}'.",
            status_code=404,
            details={"user_id": user_id, "event_id": event_id},
        )


class DependencyUnavailableError(RecoException):
    """Raised when a snapshot required for correctness cannot be read."""

    def __init__(self, dependency: str, error: Exception):
        super().__init__(
            message=f"{dependency} unavailable: {error}",
            status_code=503,
            details={
                "dependency": dependency,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
