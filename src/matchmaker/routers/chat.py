"""Chat router – streamed explanations relayed from an upstream LLM.

POST /api/match-explanation
    Stream an explanation of why two profiles match.

POST /api/chat
    Stream a reply to a conversation.

POST /api/claude-chat
    One-shot Claude completion for a single prompt.
"""

import logging
from typing import Literal

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from ..deps import ChatProviders, ClaudeProvider, SettingsDep
from ..lib.prompts import match_explanation_prompt
from ..lib.providers import ChatProvider, select_provider
from ..lib.sse import SSERelay

router = APIRouter(prefix="/api", tags=["chat"])

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class MatchExplanationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profile_a_name: str = Field(..., alias="profileAName", min_length=1)
    profile_a_likes: list[str] = Field(..., alias="profileALikes")
    profile_b_name: str = Field(..., alias="profileBName", min_length=1)
    profile_b_likes: list[str] = Field(..., alias="profileBLikes")


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)
    provider: str | None = Field(None, description="Upstream provider name (openai or anthropic)")


class ClaudeChatRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class ClaudeChatResponse(BaseModel):
    response: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def relay_stream(
    provider: ChatProvider,
    messages: list[dict],
    settings: Settings,
) -> StreamingResponse:
    """Open the upstream stream and relay it as normalized SSE events.

    The upstream request is sent (and its status checked) before the
    response starts, so an upstream rejection is still a JSON error.
    """
    upstream = await provider.open_stream(messages)
    relay = SSERelay(
        provider.extract_delta,
        sentinel=provider.sentinel,
        timeout=settings.upstream_timeout_seconds,
        flush_trailing_line=settings.sse_flush_trailing_line,
    )

    async def body():
        try:
            async for event in relay.events(upstream.aiter_bytes()):
                yield event
        finally:
            await upstream.aclose()
            logger.debug("%s relay finished in state %s", provider.name, relay.state.value)

    return StreamingResponse(body(), media_type="text/event-stream", headers=SSE_HEADERS)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/match-explanation")
async def match_explanation(
    payload: MatchExplanationRequest,
    providers: ChatProviders,
    settings: SettingsDep,
) -> StreamingResponse:
    provider = select_provider(providers, settings.chat_provider)
    prompt = match_explanation_prompt(
        payload.profile_a_name,
        payload.profile_a_likes,
        payload.profile_b_name,
        payload.profile_b_likes,
    )
    return await relay_stream(provider, [{"role": "user", "content": prompt}], settings)


@router.post("/chat")
async def chat(payload: ChatRequest, providers: ChatProviders, settings: SettingsDep) -> StreamingResponse:
    provider = select_provider(providers, payload.provider or settings.chat_provider)
    messages = [m.model_dump() for m in payload.messages]
    return await relay_stream(provider, messages, settings)


@router.post("/claude-chat", response_model=ClaudeChatResponse)
async def claude_chat(payload: ClaudeChatRequest, provider: ClaudeProvider) -> ClaudeChatResponse:
    text = await provider.complete([{"role": "user", "content": payload.prompt}])
    return ClaudeChatResponse(response=text)
