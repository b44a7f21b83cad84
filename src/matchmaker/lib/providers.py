"""Upstream chat-completion providers.

Each provider knows how to shape a streaming (and a one-shot) request for
its API and where the content delta lives in its stream events. The SSE
relay is shared; only these two concerns vary per provider.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from ..config import Settings
from ..errors import ProviderNotConfigured, UpstreamFailure

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ChatProvider(ABC):
    """Abstract base class for streaming chat providers."""

    #: Upstream end-of-stream marker, or ``None`` when the provider has none.
    sentinel: str | None = None

    def __init__(self, client: httpx.AsyncClient, api_key: str, model: str, base_url: str):
        self._client = client
        self._api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def _request(self, messages: list[dict], stream: bool) -> httpx.Request:
        """Build the upstream request for *messages*."""
        ...

    @abstractmethod
    def extract_delta(self, payload) -> str | None:
        """Return the content delta carried by one stream event payload."""
        ...

    @abstractmethod
    def _completion_text(self, data: dict) -> str:
        ...

    async def open_stream(self, messages: list[dict]) -> httpx.Response:
        """Send a streaming request and return the open response.

        The status is checked before returning so a failed upstream call is
        reported before any output reaches the caller. The caller owns the
        returned response and must close it.
        """
        request = self._request(messages, stream=True)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.exception("%s stream request failed", self.name)
            raise UpstreamFailure("Failed to reach chat provider") from exc

        if not response.is_success:
            body = await response.aread()
            await response.aclose()
            logger.error(
                "%s API error: status %s %s",
                self.name,
                response.status_code,
                body[:500].decode("utf-8", errors="replace"),
            )
            raise UpstreamFailure("Failed to generate response")
        return response

    async def complete(self, messages: list[dict]) -> str:
        """Run a non-streaming completion and return its text."""
        request = self._request(messages, stream=False)
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            logger.exception("%s completion request failed", self.name)
            raise UpstreamFailure("Failed to reach chat provider") from exc

        if not response.is_success:
            logger.error("%s API error: status %s %s", self.name, response.status_code, response.text[:500])
            raise UpstreamFailure(f"{self.name} API request failed")
        try:
            return self._completion_text(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("Unexpected %s completion payload", self.name)
            raise UpstreamFailure(f"Invalid {self.name} response") from exc


class OpenAIChatProvider(ChatProvider):
    sentinel = "[DONE]"

    @property
    def name(self) -> str:
        return "openai"

    def _request(self, messages: list[dict], stream: bool) -> httpx.Request:
        return self._client.build_request(
            "POST",
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"model": self.model, "messages": messages, "stream": stream},
        )

    def extract_delta(self, payload) -> str | None:
        choices = payload.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("delta") or {}).get("content")

    def _completion_text(self, data: dict) -> str:
        return data["choices"][0]["message"]["content"]


class AnthropicChatProvider(ChatProvider):
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com",
        max_tokens: int = 1024,
    ):
        super().__init__(client, api_key, model, base_url)
        self.max_tokens = max_tokens

    @property
    def name(self) -> str:
        return "anthropic"

    def _request(self, messages: list[dict], stream: bool) -> httpx.Request:
        body = {"model": self.model, "max_tokens": self.max_tokens, "messages": messages}
        if stream:
            body["stream"] = True
        return self._client.build_request(
            "POST",
            f"{self.base_url}/v1/messages",
            headers={"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION},
            json=body,
        )

    def extract_delta(self, payload) -> str | None:
        # Only text deltas carry content; message_start/stop, pings etc. do not.
        if payload.get("type") == "error":
            logger.warning("Anthropic stream error: %s", payload.get("error") or payload)
            return None
        if payload.get("type") != "content_block_delta":
            return None
        return (payload.get("delta") or {}).get("text")

    def _completion_text(self, data: dict) -> str:
        return data["content"][0]["text"]


def build_chat_providers(settings: Settings, client: httpx.AsyncClient) -> dict[str, ChatProvider]:
    """Create a provider for each upstream whose credentials are configured."""
    providers: dict[str, ChatProvider] = {}
    if settings.openai_api_key:
        providers["openai"] = OpenAIChatProvider(
            client, settings.openai_api_key, settings.gpt_model, settings.openai_base_url
        )
    if settings.anthropic_api_key:
        providers["anthropic"] = AnthropicChatProvider(
            client,
            settings.anthropic_api_key,
            settings.claude_model,
            settings.anthropic_base_url,
            max_tokens=settings.claude_max_tokens,
        )
    return providers


def select_provider(providers: dict[str, ChatProvider], preferred: str | None = None) -> ChatProvider:
    if preferred:
        provider = providers.get(preferred)
        if provider is None:
            raise ProviderNotConfigured(f"Chat provider '{preferred}' is not configured")
        return provider
    for name in ("openai", "anthropic"):
        if name in providers:
            return providers[name]
    raise ProviderNotConfigured("No chat provider configured")
