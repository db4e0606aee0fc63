"""
通知队列（best-effort，fire-and-forget）。

组成：
- `NotificationChannel` Protocol：`publish(topic, payload)`，不要求 ack
- `RedisQueueChannel`：RPUSH 到以 topic 命名的 Redis list（消费方 BLPOP）
- `InMemoryChannel`：本地运行/单元测试
- `NotificationDispatcher`：有界缓冲 + 后台 worker

关键约束：
- `dispatch()` 是同步、非阻塞的：缓冲满了直接丢弃并记日志，绝不拖慢业务请求
- 发布失败/超时只记日志（`NotificationError` 不向上传播）
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

import anyio
import redis.asyncio as redis
from redis.exceptions import RedisError

from app.records.errors import NotificationError
from app.records.models import Notification

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    async def publish(self, topic: str, payload: bytes) -> None: ...


class RedisQueueChannel:
    """基于 Redis list 的简单队列。"""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def publish(self, topic: str, payload: bytes) -> None:
        try:
            await self._client.rpush(topic, payload)
        except RedisError as exc:
            raise NotificationError(f"Queue publish to {topic} failed: {exc}") from exc


@dataclass
class InMemoryChannel:
    """内存 channel：只记录收到的消息。"""

    messages: list[tuple[str, bytes]] = field(default_factory=list)

    async def publish(self, topic: str, payload: bytes) -> None:
        self.messages.append((topic, payload))


class NotificationDispatcher:
    """把通知从请求路径上剥离：请求只负责入缓冲，后台 worker 负责真正发送。"""

    def __init__(
        self,
        channel: NotificationChannel,
        topic: str,
        timeout_seconds: float,
        buffer_size: int,
    ) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be > 0")
        self._channel = channel
        self._topic = topic
        self._timeout_seconds = timeout_seconds
        self._send, self._receive = anyio.create_memory_object_stream(max_buffer_size=buffer_size)

    def dispatch(self, notification: Notification) -> None:
        try:
            self._send.send_nowait(notification)
        except anyio.WouldBlock:
            logger.warning(f"Notification buffer full, dropping '{notification.action}' notification")
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning(f"Dispatcher closed, dropping '{notification.action}' notification")

    def close(self) -> None:
        """停止接收新通知；worker 发送完缓冲里剩余的通知后退出。"""
        self._send.close()

    async def serve(self) -> None:
        async with self._receive:
            async for notification in self._receive:
                await self._deliver(notification)

    async def _deliver(self, notification: Notification) -> None:
        try:
            with anyio.fail_after(self._timeout_seconds):
                await self._channel.publish(self._topic, notification.to_bytes())
        except TimeoutError:
            logger.warning(
                f"Publishing '{notification.action}' to {self._topic} timed out after {self._timeout_seconds}s"
            )
        except NotificationError as exc:
            logger.warning(f"Publishing '{notification.action}' to {self._topic} failed: {exc}")
        except Exception:
            # channel 实现之外的意外错误：worker 不能因此退出（否则会拖垮整个 lifespan）
            logger.exception(f"Unexpected error publishing '{notification.action}' to {self._topic}")


@asynccontextmanager
async def run_dispatcher(dispatcher: NotificationDispatcher, drain_seconds: float) -> AsyncIterator[NotificationDispatcher]:
    """
    在 task group 里运行 dispatcher worker。

    退出时先 close，再给 worker 最多 `drain_seconds` 秒把缓冲发完，超时直接取消。
    """
    async with anyio.create_task_group() as task_group:
        task_group.start_soon(dispatcher.serve)
        try:
            yield dispatcher
        finally:
            dispatcher.close()
            task_group.cancel_scope.deadline = anyio.current_time() + drain_seconds
