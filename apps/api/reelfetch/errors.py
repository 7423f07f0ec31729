"""Application exception types."""

from reelfetch.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, message: str, success: bool | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(success=success, error=message)
        super().__init__(message)


class InvalidPostUrlError(ValueError):
    """Raised when a submitted link does not match a known post path shape."""


class JobTransitionError(RuntimeError):
    """Raised when a job mutation violates lifecycle rules."""


__all__ = ["ApiError", "InvalidPostUrlError", "JobTransitionError"]
