"""Tests for the upstream chat providers."""

import json
import logging

import httpx
import pytest

from ..config import Settings
from ..errors import ProviderNotConfigured, UpstreamFailure
from .providers import (
    AnthropicChatProvider,
    OpenAIChatProvider,
    build_chat_providers,
    select_provider,
)
from .sse import SSERelay


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def byte_stream(chunks: list[bytes]):
    for chunk in chunks:
        yield chunk


ANTHROPIC_STREAM = (
    "event: message_start\n"
    'data: {"type": "message_start", "message": {"id": "msg_1"}}\n\n'
    "event: content_block_delta\n"
    'data: {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Both love"}}\n\n'
    "event: ping\n"
    'data: {"type": "ping"}\n\n'
    "event: content_block_delta\n"
    'data: {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": " hiking."}}\n\n'
    "event: message_stop\n"
    'data: {"type": "message_stop"}\n\n'
).encode()


class TestOpenAIChatProvider:
    @pytest.mark.asyncio
    async def test_stream_request_shape_and_relay(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            body = (
                'data: {"choices": [{"delta": {"content": "Hi"}}]}\n\n'
                'data: {"choices": [{"delta": {"content": " there"}}]}\n\n'
                "data: [DONE]\n\n"
            ).encode()
            return httpx.Response(200, content=byte_stream([body[:17], body[17:60], body[60:]]))

        async with make_client(handler) as client:
            provider = OpenAIChatProvider(client, "sk-test", "gpt-4", "https://api.openai.com/v1/")
            response = await provider.open_stream([{"role": "user", "content": "hello"}])
            relay = SSERelay(provider.extract_delta, sentinel=provider.sentinel)
            deltas = [d async for d in relay.deltas(response.aiter_bytes())]
            await response.aclose()

        assert deltas == ["Hi", " there"]
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {
            "model": "gpt-4",
            "messages": [{"role": "user", "content": "hello"}],
            "stream": True,
        }

    @pytest.mark.asyncio
    async def test_non_success_status_raises_before_streaming(self):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "rate limited"}})

        async with make_client(handler) as client:
            provider = OpenAIChatProvider(client, "sk-test", "gpt-4", "https://api.openai.com/v1")
            with pytest.raises(UpstreamFailure):
                await provider.open_stream([{"role": "user", "content": "hello"}])

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream_failure(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        async with make_client(handler) as client:
            provider = OpenAIChatProvider(client, "sk-test", "gpt-4", "https://api.openai.com/v1")
            with pytest.raises(UpstreamFailure):
                await provider.open_stream([{"role": "user", "content": "hello"}])

    @pytest.mark.asyncio
    async def test_complete(self):
        def handler(request):
            assert json.loads(request.content)["stream"] is False
            return httpx.Response(200, json={"choices": [{"message": {"content": "Done."}}]})

        async with make_client(handler) as client:
            provider = OpenAIChatProvider(client, "sk-test", "gpt-4", "https://api.openai.com/v1")
            assert await provider.complete([{"role": "user", "content": "hi"}]) == "Done."

    def test_extract_delta(self):
        provider = OpenAIChatProvider(None, "k", "m", "u")
        assert provider.extract_delta({"choices": [{"delta": {"content": "x"}}]}) == "x"
        assert provider.extract_delta({"choices": []}) is None
        assert provider.extract_delta({"choices": [{"delta": {}}]}) is None


class TestAnthropicChatProvider:
    @pytest.mark.asyncio
    async def test_stream_request_shape_and_relay(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=byte_stream([ANTHROPIC_STREAM[:50], ANTHROPIC_STREAM[50:]]))

        async with make_client(handler) as client:
            provider = AnthropicChatProvider(client, "ak-test", "claude-test", max_tokens=256)
            response = await provider.open_stream([{"role": "user", "content": "hello"}])
            relay = SSERelay(provider.extract_delta, sentinel=provider.sentinel)
            deltas = [d async for d in relay.deltas(response.aiter_bytes())]
            await response.aclose()

        assert deltas == ["Both love", " hiking."]
        assert seen["url"] == "https://api.anthropic.com/v1/messages"
        assert seen["headers"]["x-api-key"] == "ak-test"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"] == {
            "model": "claude-test",
            "max_tokens": 256,
            "messages": [{"role": "user", "content": "hello"}],
            "stream": True,
        }

    @pytest.mark.asyncio
    async def test_complete(self):
        def handler(request):
            assert "stream" not in json.loads(request.content)
            return httpx.Response(200, json={"content": [{"type": "text", "text": "Hello!"}]})

        async with make_client(handler) as client:
            provider = AnthropicChatProvider(client, "ak-test", "claude-test")
            assert await provider.complete([{"role": "user", "content": "hi"}]) == "Hello!"

    def test_stream_error_event_is_logged(self, caplog):
        provider = AnthropicChatProvider(None, "k", "m")
        event = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}

        with caplog.at_level(logging.WARNING, logger="matchmaker.lib.providers"):
            assert provider.extract_delta(event) is None

        assert "overloaded_error" in caplog.text

    @pytest.mark.asyncio
    async def test_complete_error_status(self):
        def handler(request):
            return httpx.Response(401, text="invalid x-api-key")

        async with make_client(handler) as client:
            provider = AnthropicChatProvider(client, "bad", "claude-test")
            with pytest.raises(UpstreamFailure):
                await provider.complete([{"role": "user", "content": "hi"}])


class TestProviderSelection:
    def test_builds_only_configured_providers(self):
        assert build_chat_providers(Settings(), None) == {}
        providers = build_chat_providers(Settings(openai_api_key="sk", anthropic_api_key="ak"), None)
        assert sorted(providers) == ["anthropic", "openai"]

    def test_prefers_openai_by_default(self):
        providers = build_chat_providers(Settings(openai_api_key="sk", anthropic_api_key="ak"), None)
        assert select_provider(providers).name == "openai"
        assert select_provider(providers, "anthropic").name == "anthropic"

    def test_falls_back_to_anthropic(self):
        providers = build_chat_providers(Settings(anthropic_api_key="ak"), None)
        assert select_provider(providers).name == "anthropic"

    def test_nothing_configured(self):
        with pytest.raises(ProviderNotConfigured) as exc_info:
            select_provider({})
        assert exc_info.value.status_code == 501

    def test_unknown_preferred_provider(self):
        providers = build_chat_providers(Settings(openai_api_key="sk"), None)
        with pytest.raises(ProviderNotConfigured):
            select_provider(providers, "anthropic")
