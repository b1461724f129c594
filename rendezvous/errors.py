"""Domain errors mapped to HTTP responses in main.py"""

from typing import Optional


class SchedulingError(Exception):
    """Base error for scheduling operations"""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error

    def to_dict(self) -> dict:
        return {"success": False, "error": self.error, "message": self.message}


class ValidationError(SchedulingError):
    status_code = 400
    error = "validation_error"


class NotFoundError(SchedulingError):
    """Unknown, expired or cancelled public token. The message never says which."""

    status_code = 404
    error = "not_found"

    def __init__(self, message: str = "This link is invalid or has expired", error: Optional[str] = None):
        super().__init__(message, error)


class ConflictError(SchedulingError):
    """State transition lost to another request or is not allowed in the current state"""

    status_code = 409
    error = "conflict"

    def __init__(self, error: str, message: Optional[str] = None):
        super().__init__(message or error.replace("_", " ").capitalize(), error)


class StorageError(SchedulingError):
    status_code = 500
    error = "storage_error"

    def __init__(self, message: str = "Storage operation failed", error: Optional[str] = None):
        super().__init__(message, error)
