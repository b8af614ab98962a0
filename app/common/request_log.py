# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""请求日志（采样 + 脱敏）

只记录失败（status >= 400）或慢请求（耗时超过阈值）的请求，正常请求不落日志。
记录在响应结束后组装，经脱敏后交给 LogDispatcher 异步发送；
组装或发送过程中的任何异常都在这里吞掉，不能影响用户请求。

- 带 body 的方法在进入下游前先把 body 读进来（最多 MAX_CAPTURED_BODY_BYTES）再回放，
  这样 CSRF / 404 / 停机等没读 body 就返回的失败也能记录 requestBody
- url 里的 query string 用脱敏后的 query 重新拼，原始 query 不落日志
"""

from __future__ import annotations

import json
import logging
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from starlette.datastructures import Headers, QueryParams
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.common.constants import (
    MAX_CAPTURED_BODY_BYTES,
    REQUEST_ID_HEADER,
    SAFE_METHODS,
    SLOW_REQUEST_THRESHOLD_MS,
)
from app.common.logging import new_request_id
from app.common.redaction import Redactor, default_redactor
from app.infra.log_sink import LogDispatcher
from app.infra.ylogger import ylogger


def is_failed(status_code: int) -> bool:
    return status_code >= 400


def is_slow(duration_ms: float, threshold_ms: float = SLOW_REQUEST_THRESHOLD_MS) -> bool:
    return duration_ms > threshold_ms


def should_log(status_code: int, duration_ms: float, threshold_ms: float = SLOW_REQUEST_THRESHOLD_MS) -> bool:
    return is_failed(status_code) or is_slow(duration_ms, threshold_ms)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def describe_error(exc: BaseException, include_stack: bool = True) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"name": type(exc).__name__, "message": str(exc)}
    if include_stack:
        detail["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    code = getattr(exc, "code", None)
    if code is not None:
        detail["code"] = int(code) if isinstance(code, int) else code
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        detail["statusCode"] = status_code
    return detail


def _query_dict(params: QueryParams) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in params.keys():
        values = params.getlist(key)
        out[key] = values[0] if len(values) == 1 else values
    return out


def parse_request_body(raw: bytes, content_type: str) -> Any:
    if not raw:
        return None
    if "application/x-www-form-urlencoded" in content_type:
        return _query_dict(QueryParams(raw.decode("utf-8", errors="replace")))
    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        return None


def parse_response_body(raw: bytes) -> Any:
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text
    except RecursionError:
        return None


def with_query(path: str, query: Optional[Dict[str, Any]]) -> str:
    """path + 脱敏后的 query string；掩码里的 * 保持原样"""
    if not query:
        return path
    return f"{path}?{urlencode(query, doseq=True, safe='*')}"


def _redact_body(redactor: Redactor, body: Any) -> Any:
    # 嵌套过深的 body 只丢这一段，记录其余部分照常发送
    try:
        return redactor.redact(body)
    except RecursionError:
        ylogger.warning("Request log body too deeply nested, omitted")
        return None


@dataclass
class RequestCapture:
    """单个请求在中间件里收集到的数据"""
    request_id: str
    method: str
    path: str
    started_at: float
    user_agent: Optional[str] = None
    content_type: str = ""
    status_code: Optional[int] = None
    request_chunks: List[bytes] = field(default_factory=list)
    request_size: int = 0
    response_chunks: List[bytes] = field(default_factory=list)
    response_size: int = 0

    @property
    def request_full(self) -> bool:
        return self.request_size >= MAX_CAPTURED_BODY_BYTES

    def add_request_chunk(self, chunk: bytes) -> None:
        if not chunk or self.request_full:
            return
        room = MAX_CAPTURED_BODY_BYTES - self.request_size
        self.request_chunks.append(chunk[:room])
        self.request_size += min(len(chunk), room)

    def add_response_chunk(self, chunk: bytes) -> None:
        if not chunk or self.response_size >= MAX_CAPTURED_BODY_BYTES:
            return
        room = MAX_CAPTURED_BODY_BYTES - self.response_size
        self.response_chunks.append(chunk[:room])
        self.response_size += min(len(chunk), room)


def build_log_record(
    *,
    request_id: str,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    query: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    request_body: Any = None,
    user_agent: Optional[str] = None,
    error: Optional[Dict[str, Any]] = None,
    response_body: Any = None,
    redactor: Redactor = default_redactor,
) -> Dict[str, Any]:
    """组装一条请求日志；可选字段只在满足条件时出现"""
    failed = is_failed(status_code)
    safe_query = redactor.redact(query) if query else None
    record: Dict[str, Any] = {
        "requestId": request_id,
        "timestamp": utc_timestamp(),
        "method": method,
        "url": with_query(path, safe_query),
        "statusCode": status_code,
        "duration": f"{duration_ms:.2f}ms",
    }
    if safe_query:
        record["query"] = safe_query
    if params:
        record["params"] = redactor.redact(params)
    if failed and isinstance(request_body, (dict, list)) and request_body:
        body = _redact_body(redactor, request_body)
        if body is not None:
            record["requestBody"] = body
    if failed and user_agent:
        record["userAgent"] = user_agent
    if error:
        record["error"] = error
    if failed and response_body:
        body = _redact_body(redactor, response_body)
        if body is not None:
            record["responseBody"] = body
    return record


class RequestLogMiddleware:
    """请求日志中间件（raw ASGI，需要拦截 receive / send 才能拿到请求体和响应体）"""

    def __init__(
        self,
        app: ASGIApp,
        dispatcher: LogDispatcher,
        slow_threshold_ms: float = SLOW_REQUEST_THRESHOLD_MS,
        include_stack: bool = True,
        echo: bool = False,
        redactor: Redactor = default_redactor,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.app = app
        self.dispatcher = dispatcher
        self.slow_threshold_ms = slow_threshold_ms
        self.include_stack = include_stack
        self.echo = echo
        self.redactor = redactor
        self.clock = clock

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        headers = Headers(scope=scope)
        capture = RequestCapture(
            request_id=state.get("request_id") or headers.get(REQUEST_ID_HEADER) or new_request_id(),
            method=scope["method"],
            path=scope.get("path", ""),
            started_at=self.clock(),
            user_agent=headers.get("user-agent"),
            content_type=headers.get("content-type", ""),
        )

        buffered: List[Message] = []
        if capture.method.upper() not in SAFE_METHODS:
            buffered = await _prefetch_body(receive, capture)

        async def receive_wrapper() -> Message:
            if buffered:
                return buffered.pop(0)
            message = await receive()
            if message["type"] == "http.request":
                capture.add_request_chunk(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                capture.status_code = message["status"]
            elif message["type"] == "http.response.body" and is_failed(capture.status_code or 0):
                capture.add_response_chunk(message.get("body", b""))
            await send(message)

        raised: Optional[BaseException] = None
        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as exc:
            raised = exc
            raise
        finally:
            # 传输中断时也用已收集到的数据尝试记录
            self._finish(scope, state, capture, raised)

    def _finish(
        self,
        scope: Scope,
        state: Dict[str, Any],
        capture: RequestCapture,
        raised: Optional[BaseException],
    ) -> None:
        try:
            duration_ms = (self.clock() - capture.started_at) * 1000
            status_code = capture.status_code or 500
            if not should_log(status_code, duration_ms, self.slow_threshold_ms):
                return

            failed = is_failed(status_code)
            exc = state.get("error") or raised
            record = build_log_record(
                request_id=capture.request_id,
                method=capture.method,
                path=capture.path,
                status_code=status_code,
                duration_ms=duration_ms,
                query=_query_dict(QueryParams(scope.get("query_string", b""))),
                params=dict(scope.get("path_params") or {}),
                request_body=parse_request_body(b"".join(capture.request_chunks), capture.content_type) if failed else None,
                user_agent=capture.user_agent,
                error=describe_error(exc, self.include_stack) if exc is not None else None,
                response_body=parse_response_body(b"".join(capture.response_chunks)) if failed else None,
                redactor=self.redactor,
            )
            self.dispatcher.dispatch(record)

            if self.echo:
                ylogger.log(
                    logging.ERROR if failed else logging.INFO,
                    "[%s] %s %s - %s (%.2fms)",
                    capture.request_id,
                    capture.method,
                    record["url"],
                    status_code,
                    duration_ms,
                )
        except Exception:  # noqa: BLE001
            ylogger.debug("Error in request log middleware", exc_info=True)


async def _prefetch_body(receive: Receive, capture: RequestCapture) -> List[Message]:
    """先读 body（到结束或达到上限），返回读到的消息供下游回放"""
    messages: List[Message] = []
    while True:
        message = await receive()
        messages.append(message)
        if message["type"] != "http.request":
            break
        capture.add_request_chunk(message.get("body", b""))
        if not message.get("more_body", False) or capture.request_full:
            break
    return messages
