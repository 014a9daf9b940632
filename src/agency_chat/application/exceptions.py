from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = 403


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400
