# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""日志初始化 + 请求关联

request_id 存在 ContextVar 里，由 RequestIdMiddleware 写入；
服务自己的 handler 带 RequestIdFilter，每条日志都能按 request_id 串起来。
setup_logging 可以重复调用（测试里每个 app 都会调一次），只会更新同一个 handler。
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

SERVICE_HANDLER_NAME = "cinnamon-service"
TEXT_FORMAT = "[%(asctime)s - %(levelname)s - req=%(request_id)s - %(name)s - %(message)s]"

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def new_request_id() -> str:
    return str(uuid.uuid4())


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id or None)


def get_request_id() -> str:
    return _request_id_ctx.get() or "-"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id()
        return True


class JSONFormatter(logging.Formatter):
    """生产环境单行 JSON 日志"""

    extra_keys = ("path", "method", "error_code", "user_agent", "client_ip")

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        log = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "message": record.getMessage(),
        }
        for key in self.extra_keys:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def _service_handler(root: logging.Logger) -> logging.Handler:
    for h in root.handlers:
        if h.get_name() == SERVICE_HANDLER_NAME:
            return h
    handler = logging.StreamHandler()
    handler.set_name(SERVICE_HANDLER_NAME)
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)
    return handler


def setup_logging(level: str = "INFO", fmt: str = "text") -> logging.Handler:
    """初始化全局日志，返回服务 handler"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    handler = _service_handler(root)
    handler.setFormatter(build_formatter(fmt))
    return handler
