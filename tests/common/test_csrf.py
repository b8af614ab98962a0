"""CSRF guard: double-submit cookie protocol.

Invariants:
    - Safe methods never need the header, whatever the cookie state
    - Unsafe methods need a header byte-identical to the cookie
    - A missing cookie always gets a fresh token issued, even on rejection
    - Mobile clients are exempt; the guard never renders bodies itself
"""

import pytest

from app.common.constants import CSRF_TOKEN_BYTES
from app.common.csrf import check_csrf, new_csrf_token
from app.common.errors import CsrfMismatchError
from app.infra.context import build_app_context
from app.main import create_app
from httpx import ASGITransport, AsyncClient

from conftest import RecordingSink, add_demo_routes, csrf_cookie_from, make_settings

TOKEN = "a" * 64


def _fixed_token():
    return TOKEN


# ─── check_csrf (pure) ──────────────────────────────────────────

@pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS", "get"])
@pytest.mark.parametrize("cookies", [{}, {"csrf-token": TOKEN}, {"csrf-token": "other"}])
@pytest.mark.parametrize("headers", [{}, {"x-csrf-token": TOKEN}, {"x-csrf-token": "mismatch"}])
def test_safe_methods_never_rejected(method, cookies, headers):
    decision = check_csrf(method, headers, cookies, token_factory=_fixed_token)
    assert decision.error is None


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
@pytest.mark.parametrize(
    "cookies, headers",
    [
        ({"csrf-token": TOKEN}, {}),
        ({"csrf-token": TOKEN}, {"x-csrf-token": ""}),
        ({"csrf-token": TOKEN}, {"x-csrf-token": TOKEN.upper()}),
        ({"csrf-token": TOKEN}, {"x-csrf-token": TOKEN + " "}),
        ({}, {"x-csrf-token": TOKEN + "b"}),
        ({}, {}),
    ],
)
def test_unsafe_methods_reject_missing_or_mismatching_header(method, cookies, headers):
    decision = check_csrf(method, headers, cookies, token_factory=lambda: "b" * 64)
    assert isinstance(decision.error, CsrfMismatchError)


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
def test_unsafe_methods_accept_matching_header(method):
    decision = check_csrf(method, {"x-csrf-token": TOKEN}, {"csrf-token": TOKEN})
    assert decision.error is None
    assert decision.issued is False
    assert decision.token == TOKEN


def test_token_issued_when_cookie_missing():
    decision = check_csrf("GET", {}, {}, token_factory=_fixed_token)
    assert decision.issued is True
    assert decision.token == TOKEN


def test_token_issued_even_when_rejected():
    decision = check_csrf("POST", {}, {}, token_factory=_fixed_token)
    assert decision.issued is True
    assert isinstance(decision.error, CsrfMismatchError)


def test_mobile_clients_are_exempt():
    decision = check_csrf("DELETE", {"x-client-type": "mobile"}, {})
    assert decision.exempt is True
    assert decision.error is None
    assert decision.issued is False


def test_other_client_types_are_not_exempt():
    decision = check_csrf("POST", {"x-client-type": "web"}, {"csrf-token": TOKEN})
    assert decision.exempt is False
    assert isinstance(decision.error, CsrfMismatchError)


def test_issued_token_reused_repeatedly_is_never_rejected():
    first = check_csrf("GET", {}, {})
    cookies = {"csrf-token": first.token}
    headers = {"x-csrf-token": first.token}
    for method in ["POST", "PUT", "PATCH", "DELETE"] * 5:
        decision = check_csrf(method, headers, cookies)
        assert decision.error is None
        assert decision.issued is False


def test_new_token_has_enough_entropy():
    token = new_csrf_token()
    assert len(token) == CSRF_TOKEN_BYTES * 2
    int(token, 16)
    assert new_csrf_token() != token


def test_non_ascii_header_is_a_mismatch_not_a_crash():
    decision = check_csrf("POST", {"x-csrf-token": "tökén"}, {"csrf-token": TOKEN})
    assert isinstance(decision.error, CsrfMismatchError)


# ─── CsrfMiddleware (through the app) ───────────────────────────

async def test_get_without_cookie_sets_readable_cookie(client):
    res = await client.get("/api/v1/healthcheck")

    assert res.status_code == 200
    header = res.headers["set-cookie"].lower()
    assert header.startswith("csrf-token=")
    assert "path=/" in header
    assert "samesite=lax" in header
    assert "httponly" not in header
    assert "secure" not in header
    assert len(csrf_cookie_from(res)) == 64


async def test_get_with_cookie_does_not_reissue(client):
    res = await client.get("/api/v1/healthcheck", headers={"cookie": f"csrf-token={TOKEN}"})
    assert res.status_code == 200
    assert "set-cookie" not in res.headers


async def test_post_without_header_is_forbidden_envelope(client):
    res = await client.post(
        "/api/v1/items",
        json={"name": "x"},
        headers={"cookie": f"csrf-token={TOKEN}"},
    )
    assert res.status_code == 403
    assert res.json() == {"data": None, "code": 40300, "message": "CSRF token mismatch"}


async def test_post_without_cookie_is_rejected_but_bootstraps_a_token(client):
    res = await client.post("/api/v1/items", json={"name": "x"}, headers={"x-csrf-token": TOKEN})
    assert res.status_code == 403
    assert csrf_cookie_from(res) is not None
    assert csrf_cookie_from(res) != TOKEN


async def test_bootstrap_then_reuse_token(client):
    token = csrf_cookie_from(await client.get("/api/v1/healthcheck"))
    headers = {"cookie": f"csrf-token={token}", "x-csrf-token": token}

    for i in range(3):
        res = await client.post("/api/v1/items", json={"n": i}, headers=headers)
        assert res.status_code == 200
        assert res.json()["data"] == {"n": i}
        assert "set-cookie" not in res.headers


async def test_mobile_client_skips_check_and_cookie(client):
    res = await client.post("/api/v1/items", json={"n": 1}, headers={"x-client-type": "mobile"})
    assert res.status_code == 200
    assert "set-cookie" not in res.headers


async def test_rejection_is_logged_as_failed_request(client, sink, context):
    await client.delete("/api/v1/items", headers={"cookie": f"csrf-token={TOKEN}", "x-csrf-token": "nope"})
    await context.log_dispatcher.drain()

    (record,) = sink.parsed
    assert record["statusCode"] == 403
    assert record["error"]["name"] == "CsrfMismatchError"
    assert record["error"]["code"] == 40300
    assert record["responseBody"] == {"data": None, "code": 40300, "message": "CSRF token mismatch"}


async def test_production_cookie_is_secure_and_strict():
    ctx = build_app_context(make_settings(ENV="prod"), log_sink=RecordingSink())
    app = add_demo_routes(create_app(ctx))
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        res = await c.get("/api/v1/healthcheck")

    header = res.headers["set-cookie"].lower()
    assert "secure" in header
    assert "samesite=strict" in header
    assert "httponly" not in header
