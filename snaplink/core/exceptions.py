"""Domain exceptions raised by the service layer.

Route handlers never catch these individually; the handlers registered in
``snaplink.main`` turn them into JSON error responses.
"""

from typing import Literal

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class SnaplinkError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SnaplinkError):
    """A slug or URL failed its format rule."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(SnaplinkError):
    """A slug is reserved or already held by a mapping."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        reason: Literal["reserved", "in_use"] = "in_use",
    ) -> None:
        super().__init__(message)
        self.reason = reason


class NotFoundError(SnaplinkError):
    """No active mapping matches (absent, soft-deleted or owned by someone else)."""

    status_code = status.HTTP_404_NOT_FOUND


class ResourceExhaustedError(SnaplinkError):
    """Slug generation gave up after its bounded number of attempts."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def snaplink_error_handler(request: Request, exc: SnaplinkError) -> JSONResponse:
    """Render a domain error as ``{"detail": message}``."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain error handler to the application."""
    app.add_exception_handler(SnaplinkError, snaplink_error_handler)
