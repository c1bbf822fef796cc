"""
HTTP Error Types

Service functions raise these; FastAPI turns them into JSON responses with
``{"detail": ...}`` and the matching status code.
"""

from typing import Optional

from fastapi import HTTPException, status


class BadRequestError(HTTPException):
    """400 - business validation failed."""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnauthorizedError(HTTPException):
    """401 - missing, invalid or revoked credentials."""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    """403 - authenticated but not allowed."""

    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    """404 - referenced record does not exist (or is outside the caller's restaurant)."""

    def __init__(self, resource: str, identifier: Optional[object] = None):
        detail = f"{resource} not found" if identifier is None else f"{resource} {identifier} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """409 - state precondition failed (occupied table, order not pending, duplicate)."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ServiceUnavailableError(HTTPException):
    """500 - every delivery channel for a required message failed."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
