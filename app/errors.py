# app/errors.py
"""
Failure taxonomy shared by the services and the HTTP layer.

Services raise these; app.main turns them into `{"error": message}` with the
matching status code. Anything that is not an AppError is treated as an
unexpected failure and answered with a generic 500.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Already exists"


class UnexpectedError(AppError):
    status_code = 500
