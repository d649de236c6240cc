"""Tests for the message-write rate limiter."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from middleware import RateLimitConfig, RateLimitMiddleware


def make_client(burst_limit: int = 2) -> TestClient:
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        config=RateLimitConfig(burst_limit=burst_limit, requests_per_minute=100),
    )

    @app.post("/api/chat/messages")
    async def send():
        return {"ok": True}

    @app.post("/api/chat/messages/{message_id}/forward")
    async def forward(message_id: str):
        return {"ok": True}

    @app.get("/api/chat/view")
    async def view():
        return {"ok": True}

    return TestClient(app)


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    def test_burst_limit_per_token(self):
        client = make_client()
        headers = {"Authorization": "Bearer alice"}

        assert client.post("/api/chat/messages", headers=headers).status_code == 200
        assert client.post("/api/chat/messages/m1/forward", headers=headers).status_code == 200

        blocked = client.post("/api/chat/messages", headers=headers)
        assert blocked.status_code == 429
        assert blocked.json()["code"] == "3001"
        assert blocked.headers["Retry-After"] == "10"

        other = client.post("/api/chat/messages", headers={"Authorization": "Bearer bob"})
        assert other.status_code == 200

    def test_reads_are_not_limited(self):
        client = make_client(burst_limit=1)
        headers = {"Authorization": "Bearer alice"}

        for _ in range(3):
            assert client.get("/api/chat/view", headers=headers).status_code == 200

    def test_remaining_header(self):
        client = make_client()
        response = client.post("/api/chat/messages", headers={"Authorization": "Bearer carol"})
        assert response.headers["X-RateLimit-Remaining"] == "99"
