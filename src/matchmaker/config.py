"""Runtime configuration read from environment variables."""

import os
from functools import lru_cache

from pydantic import BaseModel

from .errors import ConfigurationError

DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 30.0


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    log_level: str = "INFO"
    cors_origins: list[str] = []

    # Backing store
    match_backend: str = "supabase"
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_anon_key: str | None = None
    match_function: str = "find_matches_cursor"
    secure_match_function: str = "find_matches_pgvector"
    offset_match_function: str = "find_matches"
    elasticsearch_url: str | None = None
    elasticsearch_api_key: str | None = None
    profiles_index: str = "profiles"

    # Upstream LLM / embedding providers
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    gpt_model: str = "gpt-4"
    embedding_model: str = "text-embedding-3-small"
    anthropic_api_key: str | None = None
    anthropic_base_url: str = "https://api.anthropic.com"
    claude_model: str = "claude-3-5-sonnet-20241022"
    claude_max_tokens: int = 1024
    chat_provider: str | None = None
    upstream_timeout_seconds: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS

    # Protocol behaviour switches
    pagination_lookahead: bool = False
    sse_flush_trailing_line: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ.get
        origins = [o.strip() for o in env("CORS_ORIGINS", "").split(",") if o.strip()]
        return cls(
            log_level=env("LOG_LEVEL", "INFO"),
            cors_origins=origins,
            match_backend=env("MATCH_BACKEND", "supabase").lower(),
            supabase_url=env("SUPABASE_URL") or None,
            supabase_service_role_key=env("SUPABASE_SERVICE_ROLE_KEY") or None,
            supabase_anon_key=env("SUPABASE_ANON_KEY") or None,
            match_function=env("MATCH_FUNCTION", "find_matches_cursor"),
            secure_match_function=env("SECURE_MATCH_FUNCTION", "find_matches_pgvector"),
            offset_match_function=env("OFFSET_MATCH_FUNCTION", "find_matches"),
            elasticsearch_url=env("ELASTICSEARCH_URL") or None,
            elasticsearch_api_key=env("ELASTICSEARCH_API_KEY") or None,
            profiles_index=env("PROFILES_INDEX", "profiles"),
            # The AI gateway key takes precedence, matching the web app.
            openai_api_key=env("AI_GATEWAY_API_KEY") or env("OPENAI_API_KEY") or None,
            openai_base_url=env("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            gpt_model=env("GPT_MODEL", "gpt-4"),
            embedding_model=env("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
            anthropic_api_key=env("ANTHROPIC_API_KEY") or None,
            anthropic_base_url=env("ANTHROPIC_BASE_URL", "https://api.anthropic.com"),
            claude_model=env("CLAUDE_MODEL", "claude-3-5-sonnet-20241022"),
            claude_max_tokens=int(env("CLAUDE_MAX_TOKENS", "1024")),
            chat_provider=env("CHAT_PROVIDER") or None,
            upstream_timeout_seconds=float(
                env("UPSTREAM_TIMEOUT_SECONDS", str(DEFAULT_UPSTREAM_TIMEOUT_SECONDS))
            ),
            pagination_lookahead=_env_flag("PAGINATION_LOOKAHEAD"),
            sse_flush_trailing_line=_env_flag("SSE_FLUSH_TRAILING_LINE"),
        )

    def supabase_credentials(self) -> tuple[str, str]:
        """Return ``(url, service_role_key)`` or raise if either is unset."""
        if not self.supabase_url or not self.supabase_service_role_key:
            raise ConfigurationError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        return self.supabase_url.rstrip("/"), self.supabase_service_role_key


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
