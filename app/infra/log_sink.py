# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

"""请求日志去向

注意：
- sink 只暴露 send(record) -> bool，调用方不关心具体存储
- CloudWatch client 延迟初始化；log group / stream 只在第一次发送时确保存在
- LogDispatcher 在自己的线程配额里发送（不和同步接口抢默认线程池），fire-and-forget，任何失败都只记本地日志
- 在途发送超过上限时直接丢弃新记录，sink 故障时内存不会无限增长
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
from typing import Any, Mapping, Optional, Protocol, Set

import anyio
import anyio.to_thread
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.common.constants import LOG_SINK_WORKERS, MAX_PENDING_LOG_SENDS
from app.infra.config import Settings
from app.infra.ylogger import request_logger, ylogger


class LogSink(Protocol):
    def send(self, record: str) -> bool:
        ...


class NullLogSink:
    def send(self, record: str) -> bool:
        return True


class ConsoleLogSink:
    def send(self, record: str) -> bool:
        request_logger.info(record)
        return True


class CloudWatchLogSink:
    def __init__(
        self,
        *,
        log_group: str,
        log_stream: str,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.log_group = log_group
        self.log_stream = log_stream
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = client
        self._ready = False
        self._lock = threading.Lock()

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        # 未配置密钥时走默认凭证链（实例角色 / 环境变量）
        _session = boto3.session.Session(
            aws_access_key_id=self._access_key_id or None,
            aws_secret_access_key=self._secret_access_key or None,
            region_name=self._region or None,
        )
        self._client = _session.client("logs")
        return self._client

    def _ensure_stream(self) -> None:
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            client = self._get_client()
            _create_ignoring_existing(client.create_log_group, logGroupName=self.log_group)
            _create_ignoring_existing(
                client.create_log_stream,
                logGroupName=self.log_group,
                logStreamName=self.log_stream,
            )
            ylogger.info("CloudWatch log stream ready: group=%s, stream=%s", self.log_group, self.log_stream)
            self._ready = True

    def send(self, record: str) -> bool:
        try:
            self._ensure_stream()
            self._get_client().put_log_events(
                logGroupName=self.log_group,
                logStreamName=self.log_stream,
                logEvents=[{"timestamp": int(time.time() * 1000), "message": record}],
            )
        except (BotoCoreError, ClientError) as e:
            ylogger.error("Error sending log events: %s", e)
            return False
        return True


def _create_ignoring_existing(create: Any, **kwargs: Any) -> None:
    try:
        create(**kwargs)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "ResourceAlreadyExistsException":
            raise


def build_log_sink(settings: Settings) -> LogSink:
    kind = settings.LOG_SINK.lower()
    if kind == "cloudwatch":
        return CloudWatchLogSink(
            log_group=settings.log_group,
            log_stream=settings.log_stream,
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
    if kind == "none":
        return NullLogSink()
    return ConsoleLogSink()


def serialize_record(record: Mapping[str, Any]) -> str:
    """紧凑单行 JSON；datetime 等非 JSON 标量转字符串"""
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)


class LogDispatcher:
    def __init__(
        self,
        sink: LogSink,
        max_workers: int = LOG_SINK_WORKERS,
        max_pending: int = MAX_PENDING_LOG_SENDS,
    ) -> None:
        self.sink = sink
        self.max_workers = max_workers
        self.max_pending = max_pending
        self.dropped = 0
        self._limiter: Optional[anyio.CapacityLimiter] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def limiter(self) -> anyio.CapacityLimiter:
        # 在事件循环里第一次发送时创建
        if self._limiter is None:
            self._limiter = anyio.CapacityLimiter(self.max_workers)
        return self._limiter

    def dispatch(self, record: Mapping[str, Any]) -> None:
        """序列化后交给后台任务发送，不阻塞当前请求"""
        if len(self._pending) >= self.max_pending:
            self.dropped += 1
            ylogger.warning("Log sink backlog full (%d pending), record dropped", len(self._pending))
            return
        line = serialize_record(record)
        task = asyncio.get_running_loop().create_task(self._send(line))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, line: str) -> None:
        try:
            ok = await anyio.to_thread.run_sync(self.sink.send, line, limiter=self.limiter)
        except Exception:  # noqa: BLE001
            ylogger.warning("Log sink failed, record dropped", exc_info=True)
            return
        if not ok:
            ylogger.warning("Log sink rejected record")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """等待在途发送完成（关闭时 / 测试用）"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
