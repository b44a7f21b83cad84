"""Base abstraction for backing similarity stores.

A store owns the ranked-neighbour search (executed inside the database or
search engine), profile ownership lookups and profile persistence. The
matching layer only depends on this interface, so the concrete store is
chosen once at startup and injected.
"""

from abc import ABC, abstractmethod

from ...models import ProfileAuthorization


class MatchStore(ABC):
    """Abstract base class for similarity stores.

    Subclasses must implement every method below.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name identifying the backend (e.g. ``supabase``)."""
        ...

    @abstractmethod
    async def ranked_matches(
        self,
        subject_id: str,
        limit: int,
        cursor_score: float | None = None,
        cursor_id: str | None = None,
    ) -> list[dict]:
        """Return up to *limit* rows ``{match_id, score, ...}`` for *subject_id*.

        Rows are ordered by score descending, ties broken by id ascending.
        When a cursor is given, only rows strictly after
        ``(cursor_score, cursor_id)`` in that order are returned.
        """
        ...

    @abstractmethod
    async def offset_matches(self, subject_id: str, limit: int, offset: int) -> list[dict]:
        """Return up to *limit* ranked rows after skipping *offset* rows."""
        ...

    @abstractmethod
    async def fetch_profile_authorization(self, profile_id: str) -> ProfileAuthorization | None:
        """Read ownership/visibility for *profile_id*; ``None`` if it does not exist."""
        ...

    @abstractmethod
    async def insert_profile(
        self,
        profile_id: str | None,
        name: str,
        likes_text: str,
        embedding: list[float],
    ) -> dict:
        """Persist a profile and return the stored row."""
        ...

    async def aclose(self) -> None:
        """Release resources owned by the store (none by default)."""
        return None
