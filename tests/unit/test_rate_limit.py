"""Tests for the Redis fixed-window rate limiter."""

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from src.cm_gateway.middleware.rate_limit import RateLimitMiddleware, classify


class _FakeRedis:
    def __init__(self, fail: bool = False) -> None:
        self.counts: dict[str, int] = {}
        self.expiries: dict[str, int] = {}
        self.fail = fail

    async def incr(self, key: str) -> int:
        if self.fail:
            raise RedisConnectionError("down")
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> None:
        self.expiries[key] = seconds


def _app(redis: _FakeRedis, limit: int = 2) -> FastAPI:
    async def getter() -> _FakeRedis:
        return redis

    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        limits={"webhook": limit, "issue": limit, "status": limit},
        redis_getter=getter,
        enabled=True,
    )

    @app.get("/api/v1/mint/status")
    async def status() -> dict[str, str]:
        return {"ok": "yes"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


async def _get(app: FastAPI, path: str, **headers: str) -> int:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return (await ac.get(path, headers=headers)).status_code


class TestClassify:
    def test_groups(self) -> None:
        assert classify("POST", "/api/v1/webhooks/payment") == "webhook"
        assert classify("POST", "/api/v1/mint/payment-requests") == "issue"
        assert classify("GET", "/api/v1/mint/status") == "status"
        assert classify("GET", "/api/v1/pools/mint2/progress") == "status"
        assert classify("GET", "/health") is None
        assert classify("POST", "/api/v1/admin/scheduler/run") is None


class TestRateLimitMiddleware:
    async def test_blocks_after_limit(self) -> None:
        redis = _FakeRedis()
        app = _app(redis)
        codes = [await _get(app, "/api/v1/mint/status") for _ in range(3)]
        assert codes == [200, 200, 429]
        assert list(redis.expiries.values()) == [60]

    async def test_retry_after_header(self) -> None:
        app = _app(_FakeRedis(), limit=0)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            resp = await ac.get("/api/v1/mint/status")
        assert resp.status_code == 429
        assert 0 < int(resp.headers["Retry-After"]) <= 60
        assert resp.json()["code"] == 9001

    async def test_keyed_per_forwarded_ip(self) -> None:
        app = _app(_FakeRedis(), limit=1)
        assert await _get(app, "/api/v1/mint/status", **{"X-Forwarded-For": "1.1.1.1"}) == 200
        assert await _get(app, "/api/v1/mint/status", **{"X-Forwarded-For": "2.2.2.2, 10.0.0.1"}) == 200
        assert await _get(app, "/api/v1/mint/status", **{"X-Forwarded-For": "1.1.1.1"}) == 429

    async def test_unlimited_paths(self) -> None:
        app = _app(_FakeRedis(), limit=0)
        assert await _get(app, "/health") == 200

    async def test_fails_open_when_redis_down(self) -> None:
        app = _app(_FakeRedis(fail=True), limit=0)
        assert await _get(app, "/api/v1/mint/status") == 200
