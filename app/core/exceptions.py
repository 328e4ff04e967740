"""Custom exception classes for the application.

Every subclass carries the HTTP status it resolves to; the handlers in
``app.main`` turn them into the error envelope.
"""
from typing import Any


class AppException(Exception):
    """Base exception for the application."""

    status_code: int = 500

    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(AppException):
    """Missing or malformed input (body field, geo parameter, coordinates)."""
    status_code = 400


class UnauthorizedError(AppException):
    """No principal could be established for the request."""
    status_code = 401


class ForbiddenError(AppException):
    """Principal is known but not allowed to perform the mutation."""
    status_code = 403


class NotFoundError(AppException):
    """Resource not found."""
    status_code = 404


class DependencyError(AppException):
    """An external collaborator failed."""
    status_code = 500


class StorageError(DependencyError):
    """Object storage upload or delete failed."""
    pass
