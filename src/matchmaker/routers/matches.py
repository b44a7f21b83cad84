"""Matching router – ranked similarity queries over the profile store.

POST /api/find-matches-cursor
    Keyset-paginated matches for a profile.

POST /api/find-matches-paginated
    Offset-paginated matches for a profile (no cursor).

POST /api/secure-find-matches
    Keyset-paginated matches gated by the caller's bearer token and the
    consent/ownership guard.
"""

import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..deps import Gateway, Identity, SecureGateway, SecureStore
from ..lib.gateway import DEFAULT_LIMIT, validate_page_request
from ..lib.guard import authorize, enforce
from ..models import MatchCandidate, Page
from ..security import RequiredBearerToken

router = APIRouter(prefix="/api", tags=["matches"])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class CursorMatchRequest(BaseModel):
    profile_id: str | None = Field(None, description="Profile to find matches for")
    limit: int = Field(DEFAULT_LIMIT, description="Page size")
    # Validated by the cursor codec so malformed cursors are a 400 with a
    # precise message.
    cursor: Any = Field(None, description="Continuation cursor {score, id} from a previous page")


class OffsetMatchRequest(BaseModel):
    profile_id: str | None = Field(None, description="Profile to find matches for")
    limit: int = Field(DEFAULT_LIMIT, description="Page size")
    offset: int = Field(0, description="Number of ranked matches to skip")


class SecureMatchRequest(BaseModel):
    profile_id: str | None = Field(
        None, description="Profile to find matches for; defaults to the caller's own profile"
    )
    limit: int = Field(DEFAULT_LIMIT, description="Page size")
    cursor: Any = Field(None, description="Continuation cursor {score, id} from a previous page")


class MatchListResponse(BaseModel):
    matches: list[MatchCandidate]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/find-matches-cursor", response_model=Page)
async def find_matches_cursor(payload: CursorMatchRequest, gateway: Gateway) -> Page:
    """Return one page of matches and the cursor for the next page, if any."""
    return await gateway.query(payload.profile_id, payload.limit, payload.cursor)


@router.post("/find-matches-paginated", response_model=MatchListResponse)
async def find_matches_paginated(payload: OffsetMatchRequest, gateway: Gateway) -> MatchListResponse:
    page = await gateway.query_offset(payload.profile_id, payload.limit, payload.offset)
    return MatchListResponse(matches=page.matches)


@router.post("/secure-find-matches", response_model=Page)
async def secure_find_matches(
    payload: SecureMatchRequest,
    token: RequiredBearerToken,
    identity: Identity,
    store: SecureStore,
    gateway: SecureGateway,
) -> Page:
    """Matches for a profile the caller owns or that is public.

    Order matters: the token dependency is declared first so a missing token
    is a 401 before any collaborator is looked up; input is validated before
    any external call, and the ownership check runs against a fresh profile
    read before the similarity query.
    """
    validate_page_request(payload.limit, payload.cursor)

    caller_id = await identity.resolve(token)
    profile_id = payload.profile_id or caller_id

    profile = await store.fetch_profile_authorization(profile_id)
    decision = authorize(caller_id, profile)
    if not decision.allowed:
        logger.info("Denied match query on %s for %s: %s", profile_id, caller_id, decision.reason)
    enforce(decision)

    return await gateway.query(profile_id, payload.limit, payload.cursor)
