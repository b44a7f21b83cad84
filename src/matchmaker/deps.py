"""Request-scoped accessors for the collaborators created at startup.

Collaborators live on ``app.state`` (see ``main.lifespan``); tests attach
fakes there directly.
"""

from typing import Annotated

from fastapi import Depends, Request

from .config import Settings, get_settings
from .errors import ConfigurationError, ProviderNotConfigured
from .lib.embeddings import OpenAIEmbedder
from .lib.gateway import SimilarityGateway
from .lib.identity import SupabaseIdentity
from .lib.providers import ChatProvider
from .lib.stores.base import MatchStore

SettingsDep = Annotated[Settings, Depends(get_settings)]


def _state(request: Request, attr: str, what: str):
    value = getattr(request.app.state, attr, None)
    if value is None:
        raise ConfigurationError(f"{what} is not configured")
    return value


def get_match_store(request: Request) -> MatchStore:
    return _state(request, "match_store", "Match store")


def get_secure_match_store(request: Request) -> MatchStore:
    store = getattr(request.app.state, "secure_match_store", None)
    return store if store is not None else get_match_store(request)


def get_gateway(request: Request, settings: SettingsDep) -> SimilarityGateway:
    return SimilarityGateway(get_match_store(request), lookahead=settings.pagination_lookahead)


def get_secure_gateway(request: Request, settings: SettingsDep) -> SimilarityGateway:
    return SimilarityGateway(get_secure_match_store(request), lookahead=settings.pagination_lookahead)


def get_identity(request: Request) -> SupabaseIdentity:
    return _state(request, "identity", "Identity service")


def get_embedder(request: Request) -> OpenAIEmbedder:
    return _state(request, "embedder", "Embedding provider")


def get_chat_providers(request: Request) -> dict[str, ChatProvider]:
    return getattr(request.app.state, "chat_providers", None) or {}


def get_claude_provider(request: Request) -> ChatProvider:
    provider = get_chat_providers(request).get("anthropic")
    if provider is None:
        raise ProviderNotConfigured("ANTHROPIC_API_KEY environment variable is not set")
    return provider


Gateway = Annotated[SimilarityGateway, Depends(get_gateway)]
SecureGateway = Annotated[SimilarityGateway, Depends(get_secure_gateway)]
SecureStore = Annotated[MatchStore, Depends(get_secure_match_store)]
Store = Annotated[MatchStore, Depends(get_match_store)]
Identity = Annotated[SupabaseIdentity, Depends(get_identity)]
Embedder = Annotated[OpenAIEmbedder, Depends(get_embedder)]
ChatProviders = Annotated[dict[str, ChatProvider], Depends(get_chat_providers)]
ClaudeProvider = Annotated[ChatProvider, Depends(get_claude_provider)]
