# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""响应码

响应码为 5 位整数：前 3 位即 HTTP 状态码，后 2 位区分具体原因。
码表只追加、不修改；每个码对应唯一的固定文案。
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict


class ResponseCode(IntEnum):
    OK = 20000
    NO_CONTENT = 20400
    DUPLICATE_REGISTRATION_UID = 20301
    INTEGRITY_CONSTRAINT_VIOLATION = 23000

    BAD_REQUEST = 40000
    INVALID_INPUT = 40001
    WRONG_PASSWORD = 40002
    FILE_TOO_LARGE = 40003
    UNAUTHORIZED = 40100
    INVALID_TOKEN = 40101
    SESSION_EXPIRED = 40102
    INVALID_UID = 40104
    FORBIDDEN = 40300
    NOT_FOUND = 40400
    USER_NOT_FOUND = 40401
    FILE_NOT_FOUND = 40402
    MESSAGE_NOT_FOUND = 40403
    METHOD_NOT_ALLOWED = 40500
    CONFLICT = 40900
    WRONG_INPUT_TYPE = 41500
    WRONG_INPUT_PHOTO_TYPE = 41501
    FAILED_DEPENDENCY = 42400
    TOO_MANY_REQUESTS = 42900

    SERVER_ERROR = 50000
    BAD_GATEWAY = 50200
    SERVICE_UNAVAILABLE = 50300


RESPONSE_MESSAGES: Dict[int, str] = {
    ResponseCode.OK: "OK",
    ResponseCode.NO_CONTENT: "No content",
    ResponseCode.DUPLICATE_REGISTRATION_UID: "Registration UID already set",
    ResponseCode.INTEGRITY_CONSTRAINT_VIOLATION: "Integrity constraint violation",
    ResponseCode.BAD_REQUEST: "Bad request",
    ResponseCode.INVALID_INPUT: "Please check your input",
    ResponseCode.WRONG_PASSWORD: "Incorrect password",
    ResponseCode.FILE_TOO_LARGE: "File too large",
    ResponseCode.UNAUTHORIZED: "Unauthorized",
    ResponseCode.INVALID_TOKEN: "Invalid token",
    ResponseCode.SESSION_EXPIRED: "Session expired",
    ResponseCode.INVALID_UID: "Invalid or expired UID",
    ResponseCode.FORBIDDEN: "Forbidden",
    ResponseCode.NOT_FOUND: "Resource not found",
    ResponseCode.USER_NOT_FOUND: "User not found",
    ResponseCode.FILE_NOT_FOUND: "File not found",
    ResponseCode.MESSAGE_NOT_FOUND: "Message not found",
    ResponseCode.METHOD_NOT_ALLOWED: "Method not allowed",
    ResponseCode.CONFLICT: "Conflict",
    ResponseCode.WRONG_INPUT_TYPE: "Wrong input type",
    ResponseCode.WRONG_INPUT_PHOTO_TYPE: "Only .png, .jpg and .jpeg image format allowed",
    ResponseCode.FAILED_DEPENDENCY: "Failed dependency",
    ResponseCode.TOO_MANY_REQUESTS: "Too many requests",
    ResponseCode.SERVER_ERROR: "Internal server error",
    ResponseCode.BAD_GATEWAY: "Bad gateway",
    ResponseCode.SERVICE_UNAVAILABLE: "Service unavailable",
}


def get_response_message(code: int) -> str:
    """未登记的码一律返回服务端错误文案"""
    return RESPONSE_MESSAGES.get(code) or RESPONSE_MESSAGES[ResponseCode.SERVER_ERROR]


def status_from_code(code: int) -> int:
    """取响应码前 3 位作为 HTTP 状态码，非法时回落 500"""
    try:
        status = int(str(int(code))[:3])
    except (TypeError, ValueError):
        return 500
    if 100 <= status <= 599:
        return status
    return 500
