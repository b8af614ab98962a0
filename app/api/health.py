# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_app_context
from app.common.responses import ok
from app.infra.context import AppContext


router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/healthcheck")
def healthcheck(ctx: AppContext = Depends(get_app_context)):
    return ok({"status": "ok", "service": ctx.settings.SERVICE_NAME})
