"""
Application error taxonomy.

Every error renders as {"detail": {"code": ..., "message": ...}} so clients
see the same shape as the HTTPExceptions raised by the auth layer.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for domain errors surfaced to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code or self.code
        self.message = message
        super().__init__(
            status_code=type(self).status_code,
            detail={"code": self.code, "message": message},
        )


class ValidationError(AppError):
    """Malformed or inconsistent input, e.g. an empty title or a member outside the parent."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthorizationError(AppError):
    """Caller lacks the membership or role the action requires."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(AppError):
    """Entity or its parent does not exist, or lies outside the resolved context."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class CascadeFailure(AppError):
    """A dependent delete failed part-way through a cascade. Earlier deletes stay deleted."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CASCADE_FAILURE"
