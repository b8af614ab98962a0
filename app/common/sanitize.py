# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""入参清洗：JSON 对象顶层字符串去首尾空白，email 统一小写

只处理非安全方法的 application/json 请求，body 不是 JSON 对象时原样放行。
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.common.constants import SAFE_METHODS


def sanitize_input(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {k: v.strip() if isinstance(v, str) else v for k, v in data.items()}
    if isinstance(cleaned.get("email"), str):
        cleaned["email"] = cleaned["email"].lower()
    return cleaned


def sanitize_json_body(raw: bytes) -> bytes:
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        return raw
    if not isinstance(data, dict):
        return raw
    cleaned = sanitize_input(data)
    if cleaned == data:
        return raw
    return json.dumps(cleaned, ensure_ascii=False).encode("utf-8")


class SanitizeInputMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] != "http"
            or scope["method"].upper() in SAFE_METHODS
            or "application/json" not in Headers(scope=scope).get("content-type", "")
        ):
            await self.app(scope, receive, send)
            return

        chunks: List[bytes] = []
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # 读 body 途中客户端断开：已读部分 + 断开消息原样交给下游
                partial = {"type": "http.request", "body": b"".join(chunks), "more_body": True}
                await self.app(scope, _replay([partial, message], receive), send)
                return
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break

        raw = b"".join(chunks)
        body = sanitize_json_body(raw)
        if body is not raw:
            headers = MutableHeaders(scope=scope)
            headers["content-length"] = str(len(body))
        await self.app(scope, _replay([{"type": "http.request", "body": body, "more_body": False}], receive), send)


def _replay(messages: List[Message], receive: Receive) -> Receive:
    pending = list(messages)

    async def replay() -> Message:
        if pending:
            return pending.pop(0)
        return await receive()

    return replay
