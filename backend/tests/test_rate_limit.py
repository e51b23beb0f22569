"""Tests for the rate limiting middleware with an injected backend."""

import time

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from agrohub.auth.jwt import create_access_token
from agrohub.middleware.rate_limit import RateLimitDecision, RateLimitMiddleware


class CountingBackend:
    """Fixed-window counter kept in a dict."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.keys: list[str] = []

    async def hit(self, key: str, limit: int, window: int) -> RateLimitDecision:
        self.keys.append(key)
        count = self.counts.get(key, 0)
        reset_at = time.time() + window
        if count >= limit:
            return RateLimitDecision(False, 0, reset_at)
        self.counts[key] = count + 1
        return RateLimitDecision(True, limit - count - 1, reset_at)


class BrokenBackend:
    async def hit(self, key: str, limit: int, window: int) -> RateLimitDecision:
        raise ConnectionError("redis down")


def _app(backend, **options) -> FastAPI:
    limited = FastAPI()
    limited.add_middleware(RateLimitMiddleware, backend=backend, **options)

    @limited.get("/api/farms")
    async def farms():
        return {"ok": True}

    @limited.get("/health")
    async def health():
        return {"status": "ok"}

    return limited


@pytest_asyncio.fixture
async def make_client():
    clients = []

    async def _make(backend, **options) -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=_app(backend, **options)), base_url="http://test")
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest.mark.unit
@pytest.mark.asyncio
class TestRateLimitMiddleware:

    async def test_blocks_after_limit(self, make_client):
        client = await make_client(CountingBackend(), default_limit=2, default_window=60)

        first = await client.get("/api/farms")
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert (await client.get("/api/farms")).status_code == 200

        blocked = await client.get("/api/farms")
        assert blocked.status_code == 429
        assert blocked.json()["error"] == "Muitas requisições"
        assert int(blocked.headers["Retry-After"]) >= 1
        assert blocked.json()["retryAfter"] == int(blocked.headers["Retry-After"])

    async def test_keys_by_user_when_token_present(self, make_client):
        backend = CountingBackend()
        client = await make_client(backend)
        token = create_access_token(user_id="u1", role="USER")

        await client.get("/api/farms", headers={"Authorization": f"Bearer {token}"})
        await client.get("/api/farms", headers={"X-Forwarded-For": "10.0.0.7, 10.0.0.1"})

        assert backend.keys == ["user:u1", "ip:10.0.0.7"]

    async def test_exempt_paths_skip_backend(self, make_client):
        backend = CountingBackend()
        client = await make_client(backend)

        assert (await client.get("/health")).status_code == 200
        assert backend.keys == []

    async def test_backend_failure_fails_open(self, make_client):
        client = await make_client(BrokenBackend())
        assert (await client.get("/api/farms")).status_code == 200

    async def test_disabled(self, make_client):
        backend = CountingBackend()
        client = await make_client(backend, default_limit=0, enabled=False)

        assert (await client.get("/api/farms")).status_code == 200
        assert backend.keys == []
