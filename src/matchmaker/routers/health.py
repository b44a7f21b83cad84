from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    store: str | None = None
    chat_providers: list[str] = []


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck(request: Request) -> HealthResponse:
    store = getattr(request.app.state, "match_store", None)
    providers = getattr(request.app.state, "chat_providers", None) or {}
    return HealthResponse(
        status="ok",
        store=store.name if store is not None else None,
        chat_providers=sorted(providers),
    )
