"""End-to-end tests for the HTTP and WebSocket API (in-memory backend)."""

import asyncio

import pytest
from conftest import seed_users
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from db import InMemoryDocumentStore
from dependencies import get_document_store, get_session_registry
from main import app
from services import ChatSession, ChatStateReconciler, SessionRegistry, UploadError


def auth(uid: str) -> dict[str, str]:
    # With STORE_BACKEND=memory the bearer token is the uid
    return {"Authorization": f"Bearer {uid}"}


@pytest.fixture
def registry(store, presence_store, coordinator):
    registry = SessionRegistry(
        lambda identity: ChatSession(
            identity, ChatStateReconciler(identity, store, presence_store), coordinator
        )
    )
    yield registry
    registry.close_all()


@pytest.fixture
def client(store, registry):
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_document_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthAndAuth:
    """Tests for health and authentication."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["store_backend"] == "memory"
        assert body["services"][0]["name"] == "document_store"

    def test_missing_token(self, client):
        response = client.get("/api/chat/view")
        assert response.status_code == 401
        assert response.json()["code"] == "1006"

    def test_wrong_scheme(self, client):
        response = client.get("/api/chat/view", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401


class TestSessionsApi:
    """Tests for /api/sessions."""

    def test_open_then_resume_then_close(self, client, registry):
        opened = client.post("/api/sessions", headers=auth("s1"))
        assert opened.status_code == 201
        assert opened.json()["code"] == "0001"
        assert opened.json()["data"]["target"]["kind"] == "none"

        resumed = client.post("/api/sessions", headers=auth("s1"))
        assert resumed.status_code == 200
        assert len(registry) == 1

        closed = client.delete("/api/sessions", headers=auth("s1"))
        assert closed.status_code == 200
        assert closed.json()["code"] == "0002"

        missing = client.delete("/api/sessions", headers=auth("s1"))
        assert missing.status_code == 404
        assert missing.json()["code"] == "1005"


class TestChatApi:
    """Tests for /api/chat."""

    def test_select_and_view(self, client):
        response = client.post(
            "/api/chat/selection", json={"kind": "user", "id": "bob"}, headers=auth("c1")
        )
        assert response.status_code == 200
        assert response.json()["data"]["target"] == {
            "kind": "user",
            "id": "bob",
            "title": "bob",
            "photo_url": None,
            "status": "offline",
            "last_changed": None,
            "is_typing": False,
        }

        view = client.get("/api/chat/view", headers=auth("c1")).json()
        assert view["can_compose"] is True

    def test_select_unknown_kind(self, client):
        response = client.post(
            "/api/chat/selection", json={"kind": "channel"}, headers=auth("c2")
        )
        assert response.status_code == 422
        assert response.json()["code"] == "1000"

    def test_select_user_without_id(self, client):
        response = client.post("/api/chat/selection", json={"kind": "user"}, headers=auth("c3"))
        assert response.status_code == 400
        assert response.json()["code"] == "1001"

    def test_send_without_selection(self, client):
        response = client.post("/api/chat/messages", data={"text": "hi"}, headers=auth("c4"))
        assert response.status_code == 400
        assert response.json()["code"] == "1001"

    def test_send_empty(self, client):
        client.post("/api/chat/selection", json={"kind": "group", "id": "g1"}, headers=auth("c5"))
        response = client.post("/api/chat/messages", data={"text": "  "}, headers=auth("c5"))
        assert response.status_code == 400
        assert response.json()["code"] == "1002"

    def test_direct_message_reaches_peer(self, client):
        client.post("/api/chat/selection", json={"kind": "user", "id": "c7"}, headers=auth("c6"))
        client.post("/api/chat/selection", json={"kind": "user", "id": "c6"}, headers=auth("c7"))

        response = client.post("/api/chat/messages", data={"text": "hi"}, headers=auth("c6"))
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["target"] == "user"
        assert data["assistant"] is None

        peer_view = client.get("/api/chat/view", headers=auth("c7")).json()
        assert [m["text"] for m in peer_view["messages"]] == ["hi"]
        assert peer_view["messages"][0]["is_own"] is False

    def test_send_with_file(self, client, mock_uploads):
        client.post("/api/chat/selection", json={"kind": "group", "id": "g1"}, headers=auth("c8"))

        response = client.post(
            "/api/chat/messages",
            data={"text": ""},
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
            headers=auth("c8"),
        )

        assert response.status_code == 201
        assert response.json()["data"]["file"]["name"] == "photo.png"
        attachment = mock_uploads.upload.await_args.args[0]
        assert attachment.content_type == "image/png"
        assert attachment.data == b"\x89PNG"

    def test_failed_send_then_retry(self, client, mock_uploads):
        client.post("/api/chat/selection", json={"kind": "group", "id": "g1"}, headers=auth("c9"))
        mock_uploads.upload.side_effect = UploadError("host down")

        failed = client.post(
            "/api/chat/messages",
            data={"text": "doc"},
            files={"file": ("a.pdf", b"%PDF", "application/pdf")},
            headers=auth("c9"),
        )
        assert failed.status_code == 502
        assert failed.json()["code"] == "3000"

        mock_uploads.upload.side_effect = None
        retried = client.post("/api/chat/messages/retry", headers=auth("c9"))
        assert retried.status_code == 201
        assert retried.json()["data"]["file"]["name"] == "a.pdf"

    def test_assistant_send(self, client):
        client.post("/api/chat/selection", json={"kind": "assistant"}, headers=auth("c10"))

        response = client.post("/api/chat/messages", data={"text": "hello"}, headers=auth("c10"))

        assistant = response.json()["data"]["assistant"]
        assert assistant["state"] == "assistant_turn_saved"
        assert assistant["is_error"] is False

        view = client.get("/api/chat/view", headers=auth("c10")).json()
        assert [m["sender_name"] for m in view["messages"]] == ["You", "AI Assistant"]

    def test_forward_and_delete(self, client, store):
        client.post("/api/chat/selection", json={"kind": "group", "id": "g1"}, headers=auth("c11"))
        sent = client.post("/api/chat/messages", data={"text": "fwd me"}, headers=auth("c11"))
        message_id = sent.json()["data"]["message_id"]

        forwarded = client.post(
            f"/api/chat/messages/{message_id}/forward",
            json={"recipient_ids": ["x", "y"]},
            headers=auth("c11"),
        )
        assert forwarded.status_code == 201
        assert len(forwarded.json()["data"]["message_ids"]) == 2

        missing = client.post(
            "/api/chat/messages/nope/forward",
            json={"recipient_ids": ["x"]},
            headers=auth("c11"),
        )
        assert missing.status_code == 404
        assert missing.json()["code"] == "1004"

        deleted = client.delete(f"/api/chat/messages/{message_id}", headers=auth("c11"))
        assert deleted.status_code == 200
        assert store.get("messages", message_id) is None

    def test_forward_atomic_failure(self, client, store):
        client.post("/api/chat/selection", json={"kind": "group", "id": "g1"}, headers=auth("c12"))
        sent = client.post("/api/chat/messages", data={"text": "x"}, headers=auth("c12"))
        message_id = sent.json()["data"]["message_id"]

        response = client.post(
            f"/api/chat/messages/{message_id}/forward",
            json={"recipient_ids": ["x", "bad/uid"]},
            headers=auth("c12"),
        )

        assert response.status_code == 502
        assert response.json()["code"] == "2001"
        assert store.documents("conversations") == []


class TestLiveView:
    """Tests for the WebSocket live view."""

    def test_first_frame_is_current_state(self, client):
        with client.websocket_connect("/api/chat/ws?token=w1") as websocket:
            frame = websocket.receive_json()

        assert frame["target"]["kind"] == "none"
        assert frame["version"] >= 1

    def test_missing_token_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/chat/ws"):
                pass


class LoopBoundStore(InMemoryDocumentStore):
    """Store whose watches need the running event loop, like Firestore's."""

    def subscribe(self, spec, on_snapshot, on_error=None):
        asyncio.get_running_loop()
        return super().subscribe(spec, on_snapshot, on_error)


class TestSessionOpenedByChatRoute:
    """A chat route that opens the session starts its streams on the loop."""

    def test_first_request_syncs_users(self, presence_store, coordinator, user_docs):
        store = LoopBoundStore()
        asyncio.run(seed_users(store, *user_docs))
        registry = SessionRegistry(
            lambda identity: ChatSession(
                identity, ChatStateReconciler(identity, store, presence_store), coordinator
            )
        )
        app.dependency_overrides[get_session_registry] = lambda: registry
        app.dependency_overrides[get_document_store] = lambda: store
        try:
            view = TestClient(app).get("/api/chat/view", headers=auth("alice")).json()
        finally:
            app.dependency_overrides.clear()
            registry.close_all()

        assert sorted(u["uid"] for u in view["users"]) == ["bob", "carol"]
        assert store.subscriber_count == 0
