# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""日志脱敏

输入先转成一棵带标签的值树（object / array / scalar），再由 Redactor 递归访问：
- 值是 object / array：继续递归
- key 名包含敏感词（不区分大小写）：替换为 MASK
- 字符串里带 Bearer / Basic 凭证标记：替换为 AUTH_MASK
- 其他原样保留；日期时间类标量即使在敏感 key 下也原样保留
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Iterable, Tuple, Union

MASK = "***MASKED***"
AUTH_MASK = "***AUTH_TOKEN***"

SENSITIVE_KEYS: Tuple[str, ...] = (
    "password",
    "token",
    "secret",
    "authorization",
    "apikey",
    "api_key",
    "api-key",
)
CREDENTIAL_MARKERS: Tuple[str, ...] = ("Bearer ", "Basic ")


@dataclass(frozen=True)
class ScalarNode:
    value: Any


@dataclass(frozen=True)
class ArrayNode:
    items: Tuple["Node", ...]


@dataclass(frozen=True)
class ObjectNode:
    entries: Tuple[Tuple[Any, "Node"], ...]


Node = Union[ObjectNode, ArrayNode, ScalarNode]


def to_node(value: Any) -> Node:
    if isinstance(value, dict):
        return ObjectNode(tuple((k, to_node(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ArrayNode(tuple(to_node(v) for v in value))
    return ScalarNode(value)


def to_plain(node: Node) -> Any:
    if isinstance(node, ObjectNode):
        return {k: to_plain(v) for k, v in node.entries}
    if isinstance(node, ArrayNode):
        return [to_plain(v) for v in node.items]
    return node.value


class Redactor:
    def __init__(
        self,
        sensitive_keys: Iterable[str] = SENSITIVE_KEYS,
        credential_markers: Iterable[str] = CREDENTIAL_MARKERS,
    ) -> None:
        self._sensitive_keys = tuple(k.lower() for k in sensitive_keys)
        self._credential_markers = tuple(credential_markers)

    def redact(self, value: Any) -> Any:
        """对任意 JSON 风格的值做脱敏，返回新对象，不修改入参"""
        return to_plain(self.visit(to_node(value)))

    def visit(self, node: Node) -> Node:
        if isinstance(node, ObjectNode):
            return ObjectNode(tuple((k, self._visit_entry(str(k), v)) for k, v in node.entries))
        if isinstance(node, ArrayNode):
            return ArrayNode(tuple(self._visit_element(v) for v in node.items))
        return node

    def is_sensitive_key(self, key: str) -> bool:
        lowered = key.lower()
        return any(k in lowered for k in self._sensitive_keys)

    def has_credential(self, value: Any) -> bool:
        return isinstance(value, str) and any(m in value for m in self._credential_markers)

    def _visit_entry(self, key: str, node: Node) -> Node:
        if not isinstance(node, ScalarNode):
            return self.visit(node)
        if _is_datetime_like(node.value):
            return node
        if self.is_sensitive_key(key):
            return ScalarNode(MASK)
        if self.has_credential(node.value):
            return ScalarNode(AUTH_MASK)
        return node

    def _visit_element(self, node: Node) -> Node:
        if not isinstance(node, ScalarNode):
            return self.visit(node)
        if self.has_credential(node.value):
            return ScalarNode(AUTH_MASK)
        return node


def _is_datetime_like(value: Any) -> bool:
    return isinstance(value, (dt.date, dt.time))


default_redactor = Redactor()


def mask_sensitive_data(value: Any) -> Any:
    return default_redactor.redact(value)
