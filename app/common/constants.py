# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

# 分页
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100

# CSRF（double-submit cookie）
CSRF_TOKEN_BYTES = 32
CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "x-csrf-token"
CLIENT_TYPE_HEADER = "x-client-type"
MOBILE_CLIENT_TYPE = "mobile"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# 请求日志
REQUEST_ID_HEADER = "x-request-id"
SLOW_REQUEST_THRESHOLD_MS = 1000
MAX_CAPTURED_BODY_BYTES = 64 * 1024

# 请求日志发送：独立线程配额 + 在途上限，sink 卡住时直接丢弃新记录
LOG_SINK_WORKERS = 4
MAX_PENDING_LOG_SENDS = 1000

# 限流策略名
GENERAL_RATE_LIMIT = "general"
LOGIN_RATE_LIMIT = "login"
RATE_LIMIT_MEMORY_STORAGE = "async+memory://"

# 安全响应头（helmet 默认值，CORP 放开为 cross-origin）
SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;form-action 'self';"
        "frame-ancestors 'self';img-src 'self' data:;object-src 'none';script-src 'self';"
        "script-src-attr 'none';style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}
