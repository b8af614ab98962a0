# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import health as health_api
from app.common.csrf import CsrfMiddleware
from app.common.exception_handlers import register_exception_handlers
from app.common.logging import setup_logging
from app.common.middlewares import (
    ErrorDispatchMiddleware,
    RequestIdMiddleware,
    SecurityHeadersMiddleware,
    ShutdownGuardMiddleware,
)
from app.common.rate_limit import RateLimitMiddleware
from app.common.request_log import RequestLogMiddleware
from app.common.sanitize import SanitizeInputMiddleware
from app.infra.context import AppContext, build_app_context
from app.infra.ylogger import ylogger


@asynccontextmanager
async def lifespan(app: FastAPI):
    ctx: AppContext = app.state.context
    ylogger.info("%s started, env=%s", ctx.settings.SERVICE_NAME, ctx.settings.ENV)
    yield
    ctx.server_state.shutting_down = True
    await ctx.log_dispatcher.drain()
    ylogger.info("%s shutting down", ctx.settings.SERVICE_NAME)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    ctx = context or build_app_context()
    cfg = ctx.settings

    setup_logging(cfg.LOG_LEVEL, cfg.LOG_FORMAT)

    app = FastAPI(
        title=cfg.SERVICE_NAME,
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = ctx

    # ---------- middlewares / handlers ----------
    # add_middleware 后加的在外层，实际顺序：
    # CORS -> SecurityHeaders -> RequestId -> RateLimit -> SanitizeInput -> RequestLog
    #   -> ErrorDispatch -> CSRF -> ShutdownGuard -> router

    app.add_middleware(ShutdownGuardMiddleware, server_state=ctx.server_state)
    app.add_middleware(CsrfMiddleware, production=cfg.is_production)
    app.add_middleware(ErrorDispatchMiddleware)
    app.add_middleware(
        RequestLogMiddleware,
        dispatcher=ctx.log_dispatcher,
        slow_threshold_ms=cfg.SLOW_REQUEST_THRESHOLD_MS,
        include_stack=not cfg.is_production,
        echo=cfg.is_development,
    )
    app.add_middleware(SanitizeInputMiddleware)
    if cfg.RATE_LIMIT_ENABLED:
        app.add_middleware(RateLimitMiddleware, limiter=ctx.rate_limiter)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_api.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _cfg = app.state.context.settings
    uvicorn.run("app.main:app", host=_cfg.HOST, port=_cfg.PORT, log_config=None)
