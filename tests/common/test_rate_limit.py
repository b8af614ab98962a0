"""Rate limiting: per-IP fixed windows, 429 envelope, fail-open storage."""

import logging

from httpx import ASGITransport, AsyncClient
from limits import RateLimitItemPerSecond

from app.common.constants import GENERAL_RATE_LIMIT, LOGIN_RATE_LIMIT
from app.common.rate_limit import RequestRateLimiter, build_rate_limiter
from app.infra.context import build_app_context
from app.main import create_app

from conftest import RecordingSink, add_demo_routes, make_settings

MOBILE = {"x-client-type": "mobile"}


def _limited_app(**overrides):
    context = build_app_context(make_settings(**overrides), log_sink=RecordingSink())
    return add_demo_routes(create_app(context))


def _client(app):
    return AsyncClient(transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test")


async def test_limiter_allows_up_to_points_then_rejects():
    limiter = RequestRateLimiter({"p": RateLimitItemPerSecond(2, 60)}, clock=lambda: 0.0)

    assert (await limiter.consume("p", "1.2.3.4")).allowed
    assert (await limiter.consume("p", "1.2.3.4")).allowed
    rejected = await limiter.consume("p", "1.2.3.4")

    assert not rejected.allowed
    assert rejected.retry_after >= 1


async def test_limiter_counts_each_key_separately():
    limiter = RequestRateLimiter({"p": RateLimitItemPerSecond(1, 60)})

    assert (await limiter.consume("p", "10.0.0.1")).allowed
    assert (await limiter.consume("p", "10.0.0.2")).allowed
    assert not (await limiter.consume("p", "10.0.0.1")).allowed


async def test_storage_failure_lets_requests_through(caplog):
    limiter = RequestRateLimiter({"p": RateLimitItemPerSecond(1, 60)})

    async def broken_hit(*args, **kwargs):
        raise ConnectionError("redis down")

    limiter.strategy.hit = broken_hit
    with caplog.at_level(logging.WARNING, logger="api"):
        result = await limiter.consume("p", "10.0.0.1")

    assert result.allowed
    assert "request allowed" in caplog.text


def test_build_rate_limiter_uses_configured_policies():
    limiter = build_rate_limiter(
        make_settings(
            RATE_LIMITER_POINTS=7,
            RATE_LIMITER_DURATION_IN_SECONDS=30,
            LOGIN_LIMITER_POINTS=3,
            LOGIN_LIMITER_DURATION_IN_SECONDS=600,
        )
    )
    general = limiter.policies[GENERAL_RATE_LIMIT]
    login = limiter.policies[LOGIN_RATE_LIMIT]

    assert (general.amount, general.get_expiry()) == (7, 30)
    assert (login.amount, login.get_expiry()) == (3, 600)


async def test_general_limit_rejects_with_envelope_and_retry_after():
    app = _limited_app(RATE_LIMITER_POINTS=2)
    async with _client(app) as c:
        assert (await c.get("/api/v1/healthcheck")).status_code == 200
        assert (await c.get("/api/v1/healthcheck")).status_code == 200
        res = await c.get("/api/v1/healthcheck")

    assert res.status_code == 429
    assert res.json() == {"data": None, "code": 42900, "message": "Too many requests"}
    assert int(res.headers["retry-after"]) >= 1
    assert res.headers["x-request-id"]


async def test_disabled_rate_limit_never_rejects():
    app = _limited_app(RATE_LIMIT_ENABLED=False, RATE_LIMITER_POINTS=1, LOGIN_LIMITER_POINTS=1)
    async with _client(app) as c:
        for _ in range(3):
            assert (await c.get("/api/v1/healthcheck")).status_code == 200
            assert (await c.post("/api/v1/login", json={}, headers=MOBILE)).status_code == 400


async def test_login_policy_applies_on_top_of_general_limit():
    app = _limited_app(LOGIN_LIMITER_POINTS=1)
    async with _client(app) as c:
        first = await c.post("/api/v1/login", json={"password": "x"}, headers=MOBILE)
        second = await c.post("/api/v1/login", json={"password": "x"}, headers=MOBILE)
        other = await c.get("/api/v1/healthcheck")

    assert first.status_code == 400
    assert second.status_code == 429
    assert second.json()["code"] == 42900
    assert other.status_code == 200
