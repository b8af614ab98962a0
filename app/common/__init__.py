# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""通用基础设施（错误/日志/CSRF/请求日志等）

约定：
- Router 不写响应格式：业务错误统一通过 AppError 抛出，由统一异常出口转为标准响应
- 所有失败响应只有 {data: null, code, message} 一种形状
- request_id 通过 middleware 注入，并写入日志，便于线上排障
"""

from __future__ import annotations
