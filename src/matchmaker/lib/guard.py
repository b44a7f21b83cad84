"""Consent/ownership guard for profile-scoped queries.

A query on a profile may proceed when the caller owns it or the profile is
public. The profile must be read fresh from the store for every request.
"""

from pydantic import BaseModel

from ..errors import Forbidden, NotFound, Unauthenticated
from ..models import ProfileAuthorization

MISSING_TOKEN = "missing_token"
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"


class Decision(BaseModel):
    allowed: bool
    reason: str | None = None


ALLOWED = Decision(allowed=True)


def denied(reason: str) -> Decision:
    return Decision(allowed=False, reason=reason)


def authorize(caller_id: str | None, profile: ProfileAuthorization | None) -> Decision:
    if not caller_id:
        return denied(MISSING_TOKEN)
    if profile is None:
        return denied(NOT_FOUND)
    if caller_id != profile.owner_id and not profile.is_public:
        return denied(FORBIDDEN)
    return ALLOWED


def enforce(decision: Decision) -> None:
    """Raise the API error matching a denied decision."""
    if decision.allowed:
        return
    if decision.reason == MISSING_TOKEN:
        raise Unauthenticated("Missing Authorization token")
    if decision.reason == NOT_FOUND:
        raise NotFound("Profile not found")
    raise Forbidden("Not allowed to match on this profile")
