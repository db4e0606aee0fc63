"""
Write-Through Record Cache（核心流程）。

每个操作的顺序固定：
- 先写/读 store（权威数据；失败直接抛 `StoreError`，不碰缓存、不发通知）
- 再更新/失效缓存（best-effort：`CacheError` 只记日志）
- 最后投递通知（非阻塞：交给后台 dispatcher）

缓存 key：
- `data:{id}`：单条 record；register 写入时不过期，get 回填时带 TTL（失效失败也不会永久脏）
- `all-data`：全量列表，带 TTL；任何 register/remove 在返回前都会删除它

并发：
- 不同 id 之间互不影响；同一 id 的单条缓存是 last-writer-wins
- 读路径回填（列表 + 单条）都用进程内的 mutation generation 保护：读 store 期间如果发生过写操作，
  这次读到的结果不回填缓存（否则可能把已删除的 record 写回缓存）
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from app.config import DEFAULT_LIST_CACHE_TTL_SECONDS
from app.infra.cache import Cache
from app.records.errors import CacheError
from app.records.errors import NotFoundError
from app.records.errors import ValidationError
from app.records.models import Notification
from app.records.models import Record
from app.records.models import RecordList
from app.storage.store import RecordStore

logger = logging.getLogger(__name__)

LIST_CACHE_KEY = "all-data"


def record_cache_key(record_id: str) -> str:
    return f"data:{record_id}"


class Notifier(Protocol):
    """通知投递接口：必须立即返回（不能阻塞业务操作）。"""

    def dispatch(self, notification: Notification) -> None: ...


class RecordService:
    def __init__(
        self,
        store: RecordStore,
        cache: Cache,
        notifier: Notifier,
        list_ttl_seconds: int = DEFAULT_LIST_CACHE_TTL_SECONDS,
    ) -> None:
        if list_ttl_seconds <= 0:
            raise ValueError("list_ttl_seconds must be > 0")
        self._store = store
        self._cache = cache
        self._notifier = notifier
        self._list_ttl_seconds = list_ttl_seconds
        self._generation = 0

    async def register(self, name: str | None, value: str | None) -> Record:
        """创建 record：store -> 单条缓存 -> 失效列表缓存 -> register 通知。"""
        if not name or not value:
            raise ValidationError("Name and value are required")

        record = await self._store.create(name=name, value=value)
        self._generation += 1
        logger.info(f"Registered record {record.id}")

        await self._cache_set(record_cache_key(record.id), record.model_dump_json().encode("utf-8"))
        await self._cache_delete(LIST_CACHE_KEY)
        self._notifier.dispatch(Notification(action="register", payload=record))
        return record

    async def list_records(self) -> list[Record]:
        """
        返回全部 record。

        - 列表缓存命中：直接返回（不读 store、不发通知）
        - 未命中/读缓存失败/缓存内容损坏：读 store，回填缓存（TTL），发 retrieve 通知
        """
        cached = await self._cache_get(LIST_CACHE_KEY)
        if cached is not None:
            try:
                return RecordList.validate_json(cached)
            except PydanticValidationError as exc:
                logger.warning(f"Ignoring undecodable cache entry {LIST_CACHE_KEY}: {exc}")

        generation = self._generation
        records = list(await self._store.find_all())
        if generation == self._generation:
            await self._cache_set(LIST_CACHE_KEY, RecordList.dump_json(records), ttl_seconds=self._list_ttl_seconds)
        else:
            logger.info("Records changed during list read; not caching the result")

        self._notifier.dispatch(Notification(action="retrieve", payload=records))
        return records

    async def get_record(self, record_id: str) -> Record:
        """按 id 读取（read-through 单条缓存）；不存在抛 `NotFoundError`。"""
        cached = await self._cache_get(record_cache_key(record_id))
        if cached is not None:
            try:
                return Record.model_validate_json(cached)
            except PydanticValidationError as exc:
                logger.warning(f"Ignoring undecodable cache entry {record_cache_key(record_id)}: {exc}")

        generation = self._generation
        record = await self._store.find_by_id(record_id)
        if record is None:
            raise NotFoundError(record_id)
        if generation == self._generation:
            await self._cache_set(
                record_cache_key(record.id),
                record.model_dump_json().encode("utf-8"),
                ttl_seconds=self._list_ttl_seconds,
            )
        else:
            logger.info(f"Records changed during read of {record_id}; not caching the result")
        return record

    async def remove(self, record_id: str) -> str:
        """删除 record：store -> 删单条缓存 -> 失效列表缓存 -> remove 通知。"""
        removed = await self._store.delete_by_id(record_id)
        if removed is None:
            raise NotFoundError(record_id)
        self._generation += 1
        logger.info(f"Removed record {record_id}")

        await self._cache_delete(record_cache_key(record_id))
        await self._cache_delete(LIST_CACHE_KEY)
        self._notifier.dispatch(Notification(action="remove", payload=record_id))
        return record_id

    async def _cache_get(self, key: str) -> bytes | None:
        try:
            return await self._cache.get(key)
        except CacheError as exc:
            logger.warning(f"Cache read failed, falling back to store: {exc}")
            return None

    async def _cache_set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        try:
            await self._cache.set(key, value, ttl_seconds=ttl_seconds)
        except CacheError as exc:
            logger.warning(f"Cache write failed: {exc}")

    async def _cache_delete(self, key: str) -> None:
        try:
            await self._cache.delete(key)
        except CacheError as exc:
            logger.warning(f"Cache invalidation failed: {exc}")


def build_record_service(
    store: RecordStore,
    cache: Cache,
    notifier: Notifier,
    list_ttl_seconds: int = DEFAULT_LIST_CACHE_TTL_SECONDS,
) -> RecordService:
    """创建 service（所有外部依赖显式注入，没有模块级单例）。"""
    return RecordService(store=store, cache=cache, notifier=notifier, list_ttl_seconds=list_ttl_seconds)


