"""Keyset cursor codec.

A cursor is the ``(score, id)`` rank key of the last match on a page. It is
only ever used as an exclusive bound for the next query, never as an offset.
"""

import math
from collections.abc import Mapping

from ..errors import InvalidCursorError
from ..models import Cursor, MatchCandidate, Page

CURSOR_KEYS = frozenset({"score", "id"})


def encode(candidate: MatchCandidate) -> Cursor:
    return Cursor(score=candidate.score, id=candidate.match_id)


def decode(raw) -> Cursor:
    """Validate untrusted cursor input and return a :class:`Cursor`.

    Only a mapping with exactly a numeric ``score`` and an ``id`` is
    accepted; partial mappings are rejected rather than defaulted.
    """
    if isinstance(raw, Cursor):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidCursorError("cursor must be an object with score and id")
    if set(raw.keys()) != CURSOR_KEYS:
        raise InvalidCursorError("cursor must have exactly score and id")

    score = raw["score"]
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidCursorError("cursor score must be a number")
    if not math.isfinite(score):
        raise InvalidCursorError("cursor score must be finite")

    ident = raw["id"]
    if isinstance(ident, bool):
        raise InvalidCursorError("cursor id must be a string or integer")
    if isinstance(ident, int):
        ident = str(ident)
    if not isinstance(ident, str) or not ident:
        raise InvalidCursorError("cursor id must be a non-empty string or integer")

    return Cursor(score=float(score), id=ident)


def is_page_full(page: Page, requested_limit: int) -> bool:
    return len(page.matches) == requested_limit
