# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from app.common.response_codes import ResponseCode, get_response_message, status_from_code


@dataclass
class AppError(Exception):
    """异常统一：code 决定 HTTP 状态和默认文案，detail 只进服务端日志"""
    code: int = ResponseCode.SERVER_ERROR
    message: Optional[str] = None
    detail: Optional[Any] = None

    def __post_init__(self) -> None:
        if not self.message:
            self.message = get_response_message(self.code)

    def __str__(self) -> str:
        return self.message or ""

    @property
    def status_code(self) -> int:
        return status_from_code(self.code)


class BadRequestError(AppError):
    def __init__(self, code: int = ResponseCode.BAD_REQUEST, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class UnauthorizedError(AppError):
    def __init__(self, code: int = ResponseCode.UNAUTHORIZED, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class ForbiddenError(AppError):
    def __init__(self, code: int = ResponseCode.FORBIDDEN, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class CsrfMismatchError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(message="CSRF token mismatch")


class NotFoundError(AppError):
    def __init__(self, code: int = ResponseCode.NOT_FOUND, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class ConflictError(AppError):
    def __init__(self, code: int = ResponseCode.CONFLICT, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class TooManyRequestsError(AppError):
    def __init__(self, code: int = ResponseCode.TOO_MANY_REQUESTS, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class FailedDependencyError(AppError):
    """上游依赖（存储/邮件/缓存等）失败"""
    def __init__(self, code: int = ResponseCode.FAILED_DEPENDENCY, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)


class ServiceUnavailableError(AppError):
    def __init__(self, code: int = ResponseCode.SERVICE_UNAVAILABLE, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(code=code, message=message, detail=detail)
