from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .lib.guard import authorize, enforce

bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the bearer token from the Authorization header, if any.

    A missing or non-bearer header yields ``None``; the consent guard turns
    that into a 401 so the decision stays in one place.
    """
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


BearerToken = Annotated[str | None, Depends(get_bearer_token)]


async def require_bearer_token(token: BearerToken) -> str:
    """Like :func:`get_bearer_token`, but a missing token is a 401."""
    if token is None:
        enforce(authorize(None, None))
    return token


RequiredBearerToken = Annotated[str, Depends(require_bearer_token)]
