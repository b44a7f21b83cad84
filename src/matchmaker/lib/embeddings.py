"""Text embeddings from the OpenAI embeddings API.

Used on the profile save path: a profile's likes are embedded once and the
vector is stored next to the profile for the similarity search.
"""

import logging

import httpx

from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
    ):
        self._client = client
        self._api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")

    async def embed(self, text: str) -> list[float]:
        try:
            resp = await self._client.post(
                f"{self.base_url}/embeddings",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"model": self.model, "input": text},
            )
        except httpx.HTTPError as exc:
            logger.exception("Embedding request failed")
            raise UpstreamFailure("Embedding request failed") from exc

        if not resp.is_success:
            logger.error("Embedding request failed: %s %s", resp.status_code, resp.text[:500])
            raise UpstreamFailure("Embedding request failed")

        try:
            return [float(x) for x in resp.json()["data"][0]["embedding"]]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamFailure("Invalid embedding response") from exc
