"""
Error taxonomy shared by the service layer.

Services raise these; the HTTP layer turns them into JSON responses through
register_exception_handlers(). Rejected operations leave storage untouched.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class NoteAppError(Exception):
    """Base class for errors the API reports to the caller"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "error"
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthenticatedError(NoteAppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "Not authenticated"


class NotFoundError(NoteAppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class ForbiddenError(NoteAppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class ExpiredError(NoteAppError):
    status_code = status.HTTP_410_GONE
    code = "expired"
    default_message = "Invite expired"


class ConflictError(NoteAppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflict"


class TransientError(NoteAppError):
    """Storage or upstream failure; the caller may retry"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transient"
    default_message = "Temporary failure, please retry"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NoteAppError)
    async def handle_note_app_error(request: Request, exc: NoteAppError):
        if isinstance(exc, TransientError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Cookie"} if isinstance(exc, UnauthenticatedError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
            headers=headers,
        )
