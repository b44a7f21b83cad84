from pydantic import BaseModel, ConfigDict, Field


class MatchCandidate(BaseModel):
    """One ranked result from a similarity query.

    Extra columns returned by the backing store (e.g. ``name``) are kept and
    passed through to API callers.
    """

    model_config = ConfigDict(frozen=True, extra="allow", coerce_numbers_to_str=True)

    match_id: str = Field(..., description="Identifier of the matched profile")
    score: float = Field(..., description="Similarity score (higher is more similar)")


class Cursor(BaseModel):
    """Keyset continuation token: the rank key of the last row of a page."""

    model_config = ConfigDict(frozen=True)

    score: float
    id: str


class Page(BaseModel):
    matches: list[MatchCandidate] = Field(default_factory=list)
    next_cursor: Cursor | None = None


class ProfileAuthorization(BaseModel):
    """Ownership and visibility of a profile, read fresh on every request."""

    model_config = ConfigDict(frozen=True)

    profile_id: str
    owner_id: str | None = None
    is_public: bool = False
