import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .errors import install_exception_handlers
from .lib.embeddings import OpenAIEmbedder
from .lib.identity import SupabaseIdentity
from .lib.providers import build_chat_providers
from .lib.stores import build_stores
from .log import configure_logging
from .routers import chat, health, matches, profiles

logger = logging.getLogger(__name__)

configure_logging(get_settings().log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared upstream clients and attach them to ``app.state``.

    Tests skip the lifespan (``TestClient`` without a ``with`` block) and set
    fakes on ``app.state`` instead.
    """
    settings = get_settings()
    client = httpx.AsyncClient(timeout=settings.upstream_timeout_seconds)

    match_store, secure_match_store = build_stores(settings, client)
    app.state.match_store = match_store
    app.state.secure_match_store = secure_match_store

    if settings.supabase_url and (settings.supabase_anon_key or settings.supabase_service_role_key):
        app.state.identity = SupabaseIdentity(
            client,
            settings.supabase_url,
            settings.supabase_anon_key or settings.supabase_service_role_key,
        )
    else:
        logger.warning("SUPABASE_URL and a Supabase key should be set for secure-find-matches")

    if settings.openai_api_key:
        app.state.embedder = OpenAIEmbedder(
            client,
            settings.openai_api_key,
            model=settings.embedding_model,
            base_url=settings.openai_base_url,
        )

    app.state.chat_providers = build_chat_providers(settings, client)
    logger.info(
        "Started with %s store and chat providers %s",
        match_store.name,
        sorted(app.state.chat_providers) or "none",
    )
    try:
        yield
    finally:
        for store in {id(s): s for s in (match_store, secure_match_store)}.values():
            await store.aclose()
        await client.aclose()


app = FastAPI(
    title="Matchmaker API",
    description="An API server for profile matching and streamed match explanations",
    version="0.1.0",
    lifespan=lifespan,
)

origins = get_settings().cors_origins
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

install_exception_handlers(app)

app.include_router(health.router)
app.include_router(matches.router)
app.include_router(profiles.router)
app.include_router(chat.router)


@app.get("/")
async def root():
    return {"message": "Matchmaker API"}
