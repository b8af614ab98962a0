# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""应用上下文

进程启动时构建一次，挂到 app.state.context 上，依赖通过它获取配置和 client，
不再使用模块级单例。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from app.common.rate_limit import RequestRateLimiter, build_rate_limiter
from app.infra.config import Settings, settings as default_settings
from app.infra.log_sink import LogDispatcher, LogSink, build_log_sink


@dataclass
class ServerState:
    shutting_down: bool = False


@dataclass
class AppContext:
    settings: Settings
    log_sink: LogSink
    log_dispatcher: LogDispatcher
    rate_limiter: RequestRateLimiter
    server_state: ServerState = field(default_factory=ServerState)


def build_app_context(settings: Optional[Settings] = None, log_sink: Optional[LogSink] = None) -> AppContext:
    settings = settings or default_settings
    sink = log_sink or build_log_sink(settings)
    return AppContext(
        settings=settings,
        log_sink=sink,
        log_dispatcher=LogDispatcher(sink),
        rate_limiter=build_rate_limiter(settings),
    )
