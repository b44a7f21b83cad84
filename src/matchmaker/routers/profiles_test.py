"""Tests for the profiles router."""

import pytest
from fastapi.testclient import TestClient

from ..errors import UpstreamFailure
from ..main import app


class FakeEmbedder:
    def __init__(self):
        self.texts: list[str] = []
        self.fail = False

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        if self.fail:
            raise UpstreamFailure("Embedding request failed")
        return [0.1, 0.2, 0.3]


class FakeStore:
    name = "fake"

    def __init__(self):
        self.inserted: list[tuple] = []

    async def insert_profile(self, profile_id, name, likes_text, embedding):
        self.inserted.append((profile_id, name, likes_text, embedding))
        return {"id": profile_id or "generated-id", "name": name, "likes_text": likes_text}


@pytest.fixture
def fakes():
    embedder, store = FakeEmbedder(), FakeStore()
    app.state.embedder = embedder
    app.state.match_store = store
    yield embedder, store
    for attr in ("embedder", "match_store"):
        try:
            delattr(app.state, attr)
        except AttributeError:
            pass


@pytest.fixture
def client(fakes):
    return TestClient(app)


def test_save_profile_embeds_likes(client, fakes):
    embedder, store = fakes
    resp = client.post("/api/save-profile", json={"name": "Ana", "likes": ["jazz", "green tea"]})

    assert resp.status_code == 200
    assert resp.json() == {"id": "generated-id", "name": "Ana", "likes_text": "jazz\ngreen tea"}
    assert embedder.texts == ["jazz\ngreen tea"]
    assert store.inserted == [(None, "Ana", "jazz\ngreen tea", [0.1, 0.2, 0.3])]


def test_save_profile_keeps_supplied_id(client, fakes):
    _, store = fakes
    resp = client.post("/api/save-profile", json={"id": "p7", "name": "Bo", "likes": []})
    assert resp.status_code == 200
    assert resp.json()["id"] == "p7"
    assert store.inserted[0][0] == "p7"


@pytest.mark.parametrize(
    "body",
    [
        {"likes": ["jazz"]},
        {"name": "", "likes": ["jazz"]},
        {"name": "Ana"},
        {"name": "Ana", "likes": "jazz"},
    ],
)
def test_invalid_body_returns_400_without_embedding(client, fakes, body):
    embedder, store = fakes
    resp = client.post("/api/save-profile", json=body)
    assert resp.status_code == 400
    assert embedder.texts == []
    assert store.inserted == []


def test_embedding_failure_returns_500(client, fakes):
    embedder, store = fakes
    embedder.fail = True
    resp = client.post("/api/save-profile", json={"name": "Ana", "likes": ["jazz"]})
    assert resp.status_code == 500
    assert store.inserted == []
