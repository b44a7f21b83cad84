"""Elasticsearch similarity store.

Profiles live in a single index (``profiles`` by default) with a dense
``embedding`` vector, a keyword ``id`` and the ownership fields ``user_id``
and ``is_public``. Matching for a subject profile:

1. Fetch the subject's embedding from the index.
2. Run a ``knn`` query with that vector, excluding the subject itself.
3. Sort by ``_score`` descending then ``id`` ascending, and page with
   ``search_after`` on that pair (keyset) or ``from`` (offset).
"""

import logging
import uuid

from elastic_transport import ObjectApiResponse

from ...errors import UpstreamFailure
from ...models import ProfileAuthorization
from .base import MatchStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

EMBEDDING_FIELD = "embedding"
# Candidates considered per shard by the kNN query; deep pages beyond this
# many neighbours come back empty.
KNN_NUM_CANDIDATES = 1000


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response (ObjectApiResponse or plain dict)."""
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    if isinstance(resp, dict):
        return resp
    logger.error("Unexpected Elasticsearch response type: %s", type(resp))
    raise UpstreamFailure("Invalid Elasticsearch response")


def hits_of(data: dict) -> list[dict]:
    return data.get("hits", {}).get("hits", [])


def hit_to_row(hit: dict) -> dict:
    src = hit.get("_source") or {}
    row = {
        "match_id": str(src.get("id") or hit.get("_id")),
        "score": hit.get("_score"),
    }
    if src.get("name") is not None:
        row["name"] = src["name"]
    return row


class ElasticsearchMatchStore(MatchStore):
    def __init__(self, es, index: str = "profiles"):
        self._es = es
        self.index = index

    @property
    def name(self) -> str:
        return "elasticsearch"

    async def _search(self, what: str, **kwargs) -> dict:
        try:
            resp = await self._es.search(index=self.index, **kwargs)
        except Exception as exc:
            logger.exception("Elasticsearch %s failed", what, extra={"index": self.index})
            raise UpstreamFailure("Elasticsearch request failed") from exc
        return unwrap_es_response(resp)

    async def _fetch_source(self, profile_id: str, fields: list[str]) -> dict | None:
        data = await self._search(
            "profile lookup",
            query={"ids": {"values": [profile_id]}},
            size=1,
            _source=fields,
        )
        hits = hits_of(data)
        if not hits:
            return None
        return hits[0].get("_source") or {}

    async def fetch_subject_embedding(self, subject_id: str) -> list[float] | None:
        src = await self._fetch_source(subject_id, [EMBEDDING_FIELD])
        if not src:
            return None
        return src.get(EMBEDDING_FIELD) or None

    def _knn_query(self, subject_id: str, vector: list[float]) -> dict:
        return {
            "bool": {
                "must": {
                    "knn": {
                        "field": EMBEDDING_FIELD,
                        "query_vector": vector,
                        "num_candidates": KNN_NUM_CANDIDATES,
                    }
                },
                "must_not": [{"ids": {"values": [subject_id]}}],
            }
        }

    async def _ranked(self, subject_id: str, limit: int, **page_args) -> list[dict]:
        vector = await self.fetch_subject_embedding(subject_id)
        if vector is None:
            logger.info("No embedding found for profile %s", subject_id)
            return []

        data = await self._search(
            "kNN match search",
            query=self._knn_query(subject_id, vector),
            size=limit,
            sort=[{"_score": "desc"}, {"id": "asc"}],
            _source=["id", "name"],
            **page_args,
        )
        return [hit_to_row(hit) for hit in hits_of(data)]

    async def ranked_matches(
        self,
        subject_id: str,
        limit: int,
        cursor_score: float | None = None,
        cursor_id: str | None = None,
    ) -> list[dict]:
        page_args = {}
        if cursor_score is not None and cursor_id is not None:
            page_args["search_after"] = [cursor_score, cursor_id]
        return await self._ranked(subject_id, limit, **page_args)

    async def offset_matches(self, subject_id: str, limit: int, offset: int) -> list[dict]:
        return await self._ranked(subject_id, limit, from_=offset)

    async def fetch_profile_authorization(self, profile_id: str) -> ProfileAuthorization | None:
        src = await self._fetch_source(profile_id, ["id", "user_id", "is_public"])
        if src is None:
            return None
        owner = src.get("user_id")
        return ProfileAuthorization(
            profile_id=profile_id,
            owner_id=str(owner) if owner is not None else None,
            is_public=bool(src.get("is_public")),
        )

    async def insert_profile(
        self,
        profile_id: str | None,
        name: str,
        likes_text: str,
        embedding: list[float],
    ) -> dict:
        doc_id = profile_id or str(uuid.uuid4())
        document = {
            "id": doc_id,
            "name": name,
            "likes_text": likes_text,
            EMBEDDING_FIELD: embedding,
        }
        try:
            await self._es.index(index=self.index, id=doc_id, document=document, refresh="wait_for")
        except Exception as exc:
            logger.exception("Elasticsearch profile insert failed", extra={"index": self.index})
            raise UpstreamFailure("Elasticsearch request failed") from exc
        return document

    async def aclose(self) -> None:
        await self._es.close()
