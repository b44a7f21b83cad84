import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..deps import Embedder, Store

router = APIRouter(prefix="/api", tags=["profiles"])

logger = logging.getLogger(__name__)


class SaveProfileRequest(BaseModel):
    id: str | None = Field(None, description="Profile id; generated by the store when omitted")
    name: str = Field(..., min_length=1)
    likes: list[str] = Field(..., description="Things the person likes, embedded for matching")


@router.post("/save-profile")
async def save_profile(payload: SaveProfileRequest, embedder: Embedder, store: Store) -> dict[str, Any]:
    """Embed the profile's likes and store the profile."""
    likes_text = "\n".join(payload.likes)
    embedding = await embedder.embed(likes_text)
    row = await store.insert_profile(payload.id, payload.name, likes_text, embedding)
    logger.info("Saved profile %s", row.get("id"))
    return row
