"""Bearer-token identity resolution against Supabase Auth."""

import logging

import httpx

from ..errors import Unauthenticated, UpstreamFailure

logger = logging.getLogger(__name__)


class SupabaseIdentity:
    def __init__(self, client: httpx.AsyncClient, url: str, api_key: str):
        self._client = client
        self._url = url.rstrip("/")
        self._api_key = api_key

    async def resolve(self, token: str) -> str:
        """Return the user id for *token*.

        Raises :class:`Unauthenticated` when Supabase rejects the token.
        """
        try:
            resp = await self._client.get(
                f"{self._url}/auth/v1/user",
                headers={"apikey": self._api_key, "Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            logger.exception("Supabase auth request failed")
            raise UpstreamFailure("Error verifying token") from exc

        if resp.status_code in (401, 403):
            raise Unauthenticated("Invalid token")
        if not resp.is_success:
            logger.error("Supabase auth error: %s %s", resp.status_code, resp.text[:500])
            raise UpstreamFailure("Error verifying token")

        try:
            user = resp.json()
        except ValueError as exc:
            logger.error("Supabase auth returned a non-JSON body: %s", resp.text[:500])
            raise UpstreamFailure("Error verifying token") from exc
        if not isinstance(user, dict):
            logger.error("Supabase auth returned an unexpected payload: %r", user)
            raise UpstreamFailure("Error verifying token")

        user_id = user.get("id")
        if not user_id:
            raise Unauthenticated("Invalid token")
        return str(user_id)
