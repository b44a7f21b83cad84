"""Backing similarity stores.

``build_stores`` picks the backend named by the settings and returns the
store used by the public routes and the one used by the secure route (they
differ only in the Supabase RPC they call).
"""

import httpx
from elasticsearch import AsyncElasticsearch

from ...config import Settings
from ...errors import ConfigurationError
from .base import MatchStore
from .elasticsearch import ElasticsearchMatchStore
from .supabase import SupabaseMatchStore


def build_stores(settings: Settings, client: httpx.AsyncClient) -> tuple[MatchStore, MatchStore]:
    """Return ``(match_store, secure_match_store)`` for the configured backend."""
    if settings.match_backend == "supabase":
        url, key = settings.supabase_credentials()
        public = SupabaseMatchStore(
            client,
            url,
            key,
            match_function=settings.match_function,
            offset_function=settings.offset_match_function,
        )
        secure = SupabaseMatchStore(
            client,
            url,
            key,
            match_function=settings.secure_match_function,
            offset_function=settings.offset_match_function,
        )
        return public, secure

    if settings.match_backend == "elasticsearch":
        if not settings.elasticsearch_url:
            raise ConfigurationError("ELASTICSEARCH_URL must be set for the elasticsearch backend")
        es = AsyncElasticsearch(settings.elasticsearch_url, api_key=settings.elasticsearch_api_key)
        store = ElasticsearchMatchStore(es, index=settings.profiles_index)
        return store, store

    raise ConfigurationError(f"Unknown MATCH_BACKEND: {settings.match_backend}")


__all__ = [
    "ElasticsearchMatchStore",
    "MatchStore",
    "SupabaseMatchStore",
    "build_stores",
]
