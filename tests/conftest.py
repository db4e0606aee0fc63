from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from app.infra.cache import InMemoryCache
from app.records.errors import CacheError
from app.records.errors import StoreError
from app.records.models import Notification
from app.records.models import Record
from app.records.service import RecordService
from app.storage.store import InMemoryRecordStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingStore(InMemoryRecordStore):
    """记录调用次数；`fail=True` 时模拟 store I/O 失败。"""

    def __init__(self) -> None:
        super().__init__()
        self.calls: dict[str, int] = {"create": 0, "find_all": 0, "find_by_id": 0, "delete_by_id": 0}
        self.fail = False

    def _enter(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail:
            raise StoreError(f"{name} failed")

    async def create(self, name: str, value: str) -> Record:
        self._enter("create")
        return await super().create(name, value)

    async def find_all(self) -> list[Record]:
        self._enter("find_all")
        return await super().find_all()

    async def find_by_id(self, record_id: str) -> Record | None:
        self._enter("find_by_id")
        return await super().find_by_id(record_id)

    async def delete_by_id(self, record_id: str) -> Record | None:
        self._enter("delete_by_id")
        return await super().delete_by_id(record_id)


@dataclass
class RecordingCache(InMemoryCache):
    """记录每次操作 `(op, key)`；`fail=True` 时所有操作抛 `CacheError`。"""

    ops: list[tuple[str, str]] = field(default_factory=list)
    fail: bool = False

    def _enter(self, op: str, key: str) -> None:
        self.ops.append((op, key))
        if self.fail:
            raise CacheError(f"{op} {key} failed")

    async def get(self, key: str) -> bytes | None:
        self._enter("get", key)
        return await super().get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        self._enter("set", key)
        await super().set(key, value, ttl_seconds=ttl_seconds)

    async def delete(self, key: str) -> None:
        self._enter("delete", key)
        await super().delete(key)


@dataclass
class RecordingNotifier:
    notifications: list[Notification] = field(default_factory=list)

    def dispatch(self, notification: Notification) -> None:
        self.notifications.append(notification)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def cache(clock: FakeClock) -> RecordingCache:
    return RecordingCache(clock=clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(store: CountingStore, cache: RecordingCache, notifier: RecordingNotifier) -> RecordService:
    return RecordService(store=store, cache=cache, notifier=notifier, list_ttl_seconds=60)
