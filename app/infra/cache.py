from __future__ import annotations

"""
缓存抽象。

当前提供：
- `Cache` Protocol：定义 get/set/delete 接口（值为 bytes，可选 TTL）
- `InMemoryCache`：便于本地运行/单元测试（支持过期）
- `RedisCache`：生产实现（redis.asyncio）

约定：
- 实现层出错统一抛 `CacheError`；是否吞掉由调用方决定（service 里是 best-effort）
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import anyio
import redis.asyncio as redis
from redis.exceptions import RedisError

from app.records.errors import CacheError

logger = logging.getLogger(__name__)


class Cache(Protocol):
    """缓存接口协议（用于依赖倒置，方便替换 Redis/Memory）。"""

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


@dataclass
class InMemoryCache:
    """内存缓存：只用于开发/测试。`clock` 可注入，便于测试过期。"""

    clock: Callable[[], float] = time.monotonic
    store: dict[str, tuple[bytes, float | None]] = field(default_factory=dict)

    async def get(self, key: str) -> bytes | None:
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self.store[key]
            return None
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        expires_at = None if ttl_seconds is None else self.clock() + ttl_seconds
        self.store[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)


class RedisCache:
    """
    Redis 缓存。

    - `client` 由启动流程创建并负责关闭（这里不持有生命周期）
    - `timeout_seconds`：每次调用的 deadline，超时按 `CacheError` 处理
    """

    def __init__(self, client: redis.Redis, timeout_seconds: float) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def get(self, key: str) -> bytes | None:
        try:
            with anyio.fail_after(self._timeout_seconds):
                value = await self._client.get(key)
        except (RedisError, TimeoutError) as exc:
            raise CacheError(f"Cache GET {key} failed: {exc}") from exc
        if value is None:
            return None
        return value if isinstance(value, bytes) else str(value).encode("utf-8")

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        try:
            with anyio.fail_after(self._timeout_seconds):
                await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, TimeoutError) as exc:
            raise CacheError(f"Cache SET {key} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            with anyio.fail_after(self._timeout_seconds):
                await self._client.delete(key)
        except (RedisError, TimeoutError) as exc:
            raise CacheError(f"Cache DEL {key} failed: {exc}") from exc


def create_redis_client(url: str, timeout_seconds: float) -> redis.Redis:
    """从 URL 创建 redis.asyncio 客户端（bytes 模式，不做 decode）。"""
    logger.info(f"Creating Redis client: timeout={timeout_seconds}s")
    return redis.from_url(
        url,
        decode_responses=False,
        socket_timeout=timeout_seconds,
        socket_connect_timeout=timeout_seconds,
    )
