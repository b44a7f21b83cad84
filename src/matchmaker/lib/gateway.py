"""Similarity query gateway.

Issues ranked, paginated similarity queries against a :class:`MatchStore`
and builds :class:`Page` results with keyset continuation cursors.
"""

import logging

from pydantic import ValidationError

from ..errors import InvalidArgument, UpstreamFailure
from ..models import Cursor, MatchCandidate, Page
from . import cursor as cursor_codec
from .stores.base import MatchStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def validate_limit(limit) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidArgument("limit must be a positive integer")
    return limit


def validate_page_request(limit, raw_cursor=None) -> Cursor | None:
    """Validate a keyset page request without touching the store.

    Returns the decoded cursor (or ``None``) so callers can report bad input
    before making any external call.
    """
    validate_limit(limit)
    if raw_cursor is None:
        return None
    return cursor_codec.decode(raw_cursor)


def _to_candidates(rows: list[dict]) -> list[MatchCandidate]:
    try:
        return [MatchCandidate.model_validate(row) for row in rows]
    except ValidationError as exc:
        logger.error("Similarity store returned malformed rows: %s", exc)
        raise UpstreamFailure("Invalid match results") from exc


class SimilarityGateway:
    """Ranked similarity queries over an injected store.

    With ``lookahead`` the gateway asks the store for one extra row to decide
    whether a next page exists; otherwise a full page is taken to mean more
    rows may follow.
    """

    def __init__(self, store: MatchStore, *, lookahead: bool = False):
        self.store = store
        self.lookahead = lookahead

    async def query(self, subject_id: str | None, limit: int = DEFAULT_LIMIT, cursor=None) -> Page:
        if not subject_id:
            raise InvalidArgument("profile_id is required")
        decoded = validate_page_request(limit, cursor)

        fetch = limit + 1 if self.lookahead else limit
        rows = await self.store.ranked_matches(
            subject_id,
            fetch,
            decoded.score if decoded else None,
            decoded.id if decoded else None,
        )
        candidates = _to_candidates(rows)
        more = len(candidates) > limit
        page = Page(matches=candidates[:limit])

        if self.lookahead:
            has_next = more
        else:
            has_next = cursor_codec.is_page_full(page, limit)
        if has_next and page.matches:
            page.next_cursor = cursor_codec.encode(page.matches[-1])

        logger.debug(
            "Matched %d profiles for %s (next_cursor=%s)",
            len(page.matches),
            subject_id,
            page.next_cursor is not None,
        )
        return page

    async def query_offset(self, subject_id: str | None, limit: int = DEFAULT_LIMIT, offset: int = 0) -> Page:
        if not subject_id:
            raise InvalidArgument("profile_id is required")
        validate_limit(limit)
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise InvalidArgument("offset must be a non-negative integer")

        rows = await self.store.offset_matches(subject_id, limit, offset)
        return Page(matches=_to_candidates(rows)[:limit])
