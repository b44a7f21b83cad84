"""Supabase (PostgREST) similarity store.

Ranked matching runs inside Postgres as an RPC function (pgvector); this
module only shapes the calls:

* ``POST /rest/v1/rpc/<match_function>`` with ``p_profile_id``, ``p_limit``,
  ``p_cursor_score`` and ``p_cursor_id`` for keyset pages.
* ``POST /rest/v1/rpc/<offset_function>`` with ``p_profile_id``, ``p_limit``
  and ``p_offset`` for offset pages.
* ``GET /rest/v1/profiles`` for ownership lookups, and ``POST`` on the same
  table to insert profiles.
"""

import logging

import httpx

from ...errors import UpstreamFailure
from ...models import ProfileAuthorization
from .base import MatchStore

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"


class SupabaseMatchStore(MatchStore):
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        service_role_key: str,
        match_function: str = "find_matches_cursor",
        offset_function: str = "find_matches",
    ):
        self._client = client
        self._url = url.rstrip("/")
        self._key = service_role_key
        self.match_function = match_function
        self.offset_function = offset_function

    @property
    def name(self) -> str:
        return "supabase"

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        what: str,
        headers: dict[str, str] | None = None,
        allow_client_error: bool = False,
        **kwargs,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, f"{self._url}{path}", headers=self._headers(**(headers or {})), **kwargs
            )
        except httpx.HTTPError as exc:
            logger.exception("Supabase %s request failed", what)
            raise UpstreamFailure(f"Error running {what}") from exc

        if allow_client_error and resp.is_client_error:
            return resp
        if not resp.is_success:
            logger.error("Supabase %s error: %s %s", what, resp.status_code, resp.text[:500])
            raise UpstreamFailure(f"Error running {what}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response, what: str):
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Supabase %s returned a non-JSON body: %s", what, resp.text[:500])
            raise UpstreamFailure(f"Invalid response from {what}") from exc

    async def rpc(self, function: str, params: dict) -> list[dict]:
        what = f"RPC {function}"
        resp = await self._request("POST", f"/rest/v1/rpc/{function}", what, json=params)
        data = self._json(resp, what)
        return data if isinstance(data, list) else []

    async def ranked_matches(
        self,
        subject_id: str,
        limit: int,
        cursor_score: float | None = None,
        cursor_id: str | None = None,
    ) -> list[dict]:
        return await self.rpc(
            self.match_function,
            {
                "p_profile_id": subject_id,
                "p_limit": limit,
                "p_cursor_score": cursor_score,
                "p_cursor_id": cursor_id,
            },
        )

    async def offset_matches(self, subject_id: str, limit: int, offset: int) -> list[dict]:
        return await self.rpc(
            self.offset_function,
            {"p_profile_id": subject_id, "p_limit": limit, "p_offset": offset},
        )

    async def fetch_profile_authorization(self, profile_id: str) -> ProfileAuthorization | None:
        """Read ownership and visibility of *profile_id*.

        A lookup PostgREST rejects as a client error (e.g. a malformed uuid)
        is treated as a missing profile; server and transport errors raise.
        """
        resp = await self._request(
            "GET",
            f"/rest/v1/{PROFILES_TABLE}",
            "profile lookup",
            params={"select": "id,user_id,is_public", "id": f"eq.{profile_id}"},
            allow_client_error=True,
        )
        if resp.is_client_error:
            logger.info("Profile lookup for %s rejected: %s %s", profile_id, resp.status_code, resp.text[:200])
            return None
        rows = self._json(resp, "profile lookup")
        if not isinstance(rows, list):
            raise UpstreamFailure("Invalid response from profile lookup")
        if not rows or not isinstance(rows[0], dict):
            return None
        row = rows[0]
        owner = row.get("user_id")
        return ProfileAuthorization(
            profile_id=str(row.get("id", profile_id)),
            owner_id=str(owner) if owner is not None else None,
            is_public=bool(row.get("is_public")),
        )

    async def insert_profile(
        self,
        profile_id: str | None,
        name: str,
        likes_text: str,
        embedding: list[float],
    ) -> dict:
        row = {"name": name, "likes_text": likes_text, "embedding": embedding}
        if profile_id is not None:
            row["id"] = profile_id
        resp = await self._request(
            "POST",
            f"/rest/v1/{PROFILES_TABLE}",
            "profile insert",
            json=[row],
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(resp, "profile insert")
        if not isinstance(rows, list) or not rows:
            raise UpstreamFailure("Profile insert returned no row")
        return rows[0]
