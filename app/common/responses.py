# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.common.response_codes import ResponseCode, get_response_message, status_from_code


def ok(data: Any = None, code: int = ResponseCode.OK, message: Optional[str] = None) -> JSONResponse:
    """成功响应：{"data": ..., "code": ..., "message": ...}"""
    return JSONResponse(
        status_code=status_from_code(code),
        content={
            "data": jsonable_encoder(data) if data is not None else None,
            "code": int(code),
            "message": message or get_response_message(code),
        },
    )
