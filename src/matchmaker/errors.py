"""Error taxonomy shared by the matching and chat layers.

Every error carries the HTTP status it maps to, so library code can raise
domain errors and the application turns them into JSON responses in one
place (see :func:`install_exception_handlers`).
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MatchmakerError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidArgument(MatchmakerError):
    """Client-correctable input error."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCursorError(InvalidArgument):
    """A pagination cursor did not have the ``{score, id}`` shape."""


class Unauthenticated(MatchmakerError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(MatchmakerError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(MatchmakerError):
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamFailure(MatchmakerError):
    """The similarity store, identity service or an LLM provider failed."""


class ConfigurationError(MatchmakerError):
    """A required external credential or collaborator is not configured."""


class ProviderNotConfigured(ConfigurationError):
    status_code = status.HTTP_501_NOT_IMPLEMENTED


async def _matchmaker_error_handler(request: Request, exc: MatchmakerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": errors})


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MatchmakerError, _matchmaker_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
