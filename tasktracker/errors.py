"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; ``tasktracker.main`` turns
them into ``{success: false, message, errors?}`` envelopes.
"""

from typing import List, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: Optional[List[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(AppError):
    status_code = 404


class ForbiddenError(AppError):
    status_code = 403


class ConflictError(AppError):
    status_code = 409
