"""Root conftest: shared app/client fixtures.

Tests never talk to AWS: the log sink is replaced by in-memory fakes and the
request log dispatcher is drained explicitly before asserting on records.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_SINK", "none")

import json  # noqa: E402
import re  # noqa: E402

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.api.deps import get_pagination, require_rate_limit  # noqa: E402
from app.common.constants import LOGIN_RATE_LIMIT  # noqa: E402
from app.common.errors import BadRequestError, NotFoundError  # noqa: E402
from app.common.pagination import PaginationParams, build_paginated_result  # noqa: E402
from app.common.response_codes import ResponseCode  # noqa: E402
from app.common.responses import ok  # noqa: E402
from app.infra.config import Settings  # noqa: E402
from app.infra.context import build_app_context  # noqa: E402
from app.main import create_app  # noqa: E402


class RecordingSink:
    def __init__(self):
        self.records = []

    def send(self, record):
        self.records.append(record)
        return True

    @property
    def parsed(self):
        return [json.loads(r) for r in self.records]


class FailingSink:
    def __init__(self):
        self.calls = 0

    def send(self, record):
        self.calls += 1
        raise ConnectionError("sink unreachable")


def csrf_cookie_from(response):
    """Extract the csrf-token value from a Set-Cookie header (or None)."""
    header = response.headers.get("set-cookie", "")
    match = re.search(r"csrf-token=([0-9a-f]+)", header)
    return match.group(1) if match else None


def add_demo_routes(app):
    """Small business-like routes used to drive the middleware stack."""

    @app.get("/api/v1/items")
    def list_items(params: PaginationParams = Depends(get_pagination)):
        items = [f"item{i}" for i in range(3)]
        return ok(build_paginated_result(items, 25, params).to_dict())

    @app.post("/api/v1/items")
    def create_item(payload: dict):
        return ok(payload, code=ResponseCode.OK)

    @app.get("/api/v1/users/{user_id}")
    def get_user(user_id: int):
        raise NotFoundError(code=ResponseCode.USER_NOT_FOUND)

    @app.post("/api/v1/login", dependencies=[Depends(require_rate_limit(LOGIN_RATE_LIMIT))])
    def login(payload: dict):
        raise BadRequestError(code=ResponseCode.WRONG_PASSWORD)

    @app.get("/api/v1/boom")
    def boom():
        raise RuntimeError("db connection string leaked: mysql://root:root@db")

    return app


def make_settings(**overrides):
    values = {"ENV": "test", "LOG_SINK": "none"}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def context(sink):
    return build_app_context(make_settings(), log_sink=sink)


@pytest.fixture
def app(context):
    return add_demo_routes(create_app(context))


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
