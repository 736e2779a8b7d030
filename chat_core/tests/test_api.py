"""HTTP 接口测试。"""

import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from chat_core.api.app import create_app
from chat_core.api.service import build_service
from chat_core.config.settings import Settings
from chat_core.domain.exceptions import UpstreamCredentialError
from chat_core.domain.models import ChatChoice, ChatMessage, ChatResult
from chat_core.infrastructure.storage.json_store import JsonFileStore


class FakeProvider:
    name = "fake"

    def __init__(self):
        self.error = None

    def chat(self, req):
        if self.error is not None:
            raise self.error
        msg = ChatMessage(role="assistant", content="Use two pointers...")
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)])


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(provider):
    with tempfile.TemporaryDirectory() as d:
        cfg = Settings(storage_path=str(Path(d) / "db.json"), anthropic_api_key=None)
        service = build_service(cfg, provider_client=provider, store=JsonFileStore(cfg.storage_path))
        yield TestClient(create_app(service))


def test_conversation_lifecycle(client):
    assert client.get("/api/conversations").json() == []

    created = client.post("/api/conversations").json()
    assert created["title"] == "New Chat"
    assert created["messages"] == []
    assert created["createdAt"] == created["updatedAt"]

    cid = created["id"]
    assert client.get(f"/api/conversations/{cid}").json() == created

    renamed = client.put(f"/api/conversations/{cid}", json={"title": "Strings"}).json()
    assert renamed["title"] == "Strings"

    unchanged = client.put(f"/api/conversations/{cid}", json={})
    assert unchanged.status_code == 200
    assert unchanged.json()["title"] == "Strings"

    summaries = client.get("/api/conversations").json()
    assert summaries == [{"id": cid, "title": "Strings", "updatedAt": renamed["updatedAt"]}]

    assert client.delete(f"/api/conversations/{cid}").json() == {"success": True}
    assert client.get(f"/api/conversations/{cid}").status_code == 404


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/conversations/nope"),
        ("put", "/api/conversations/nope"),
        ("delete", "/api/conversations/nope"),
    ],
)
def test_unknown_conversation_is_404(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 404
    assert response.json() == {"error": "Conversation not found", "code": "CONVERSATION_NOT_FOUND"}


def test_send_message(client):
    cid = client.post("/api/conversations").json()["id"]
    response = client.post(f"/api/conversations/{cid}/message", json={"message": "How do I reverse a string?"})
    assert response.status_code == 200
    assert response.json() == {
        "role": "assistant",
        "content": "Use two pointers...",
        "conversationId": cid,
        "title": "How do I reverse a string?",
    }
    messages = client.get(f"/api/conversations/{cid}").json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant"]


@pytest.mark.parametrize("body", [{}, {"message": ""}, None])
def test_send_message_requires_text(client, body):
    cid = client.post("/api/conversations").json()["id"]
    kwargs = {} if body is None else {"json": body}
    response = client.post(f"/api/conversations/{cid}/message", **kwargs)
    assert response.status_code == 400
    assert response.json()["error"] == "Message required"


@pytest.mark.parametrize("body", [{"message": 123}, {"message": ["hi"]}])
def test_send_message_rejects_non_string(client, body):
    cid = client.post("/api/conversations").json()["id"]
    response = client.post(f"/api/conversations/{cid}/message", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body", "code": "INVALID_REQUEST"}
    assert client.get(f"/api/conversations/{cid}").json()["messages"] == []


def test_send_message_unknown_conversation(client):
    response = client.post("/api/conversations/nope/message", json={"message": "hi"})
    assert response.status_code == 404


def test_send_message_upstream_failure(client, provider):
    cid = client.post("/api/conversations").json()["id"]
    provider.error = UpstreamCredentialError(code="MISSING_API_KEY", message="Missing API Key")
    response = client.post(f"/api/conversations/{cid}/message", json={"message": "hi"})
    assert response.status_code == 500
    assert response.json() == {"error": "Missing API Key", "code": "MISSING_API_KEY"}
    conv = client.get(f"/api/conversations/{cid}").json()
    assert conv["messages"] == []
    assert conv["title"] == "New Chat"


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["storage"].endswith("db.json")
