from __future__ import annotations

"""
持久化存储抽象。

当前提供：
- `RecordStore` Protocol：service 依赖的最小接口（用于依赖倒置，方便替换 Postgres/Memory）
- `InMemoryRecordStore`：便于本地运行/单元测试

约定：
- `id` 由 store 生成（不透明字符串）
- `find_all` 按插入顺序返回，保证列表结果确定
- 底层 I/O 失败统一抛 `StoreError`
"""

import uuid
from collections.abc import Sequence
from typing import Protocol

from app.records.models import Record


class RecordStore(Protocol):
    """Record 存储接口协议。"""

    async def create(self, name: str, value: str) -> Record: ...

    async def find_all(self) -> Sequence[Record]: ...

    async def find_by_id(self, record_id: str) -> Record | None: ...

    async def delete_by_id(self, record_id: str) -> Record | None: ...


class InMemoryRecordStore:
    """内存 store：只用于开发/测试；dict 保持插入顺序。"""

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}

    async def create(self, name: str, value: str) -> Record:
        record = Record(id=uuid.uuid4().hex, name=name, value=value)
        self._records[record.id] = record
        return record

    async def find_all(self) -> list[Record]:
        return list(self._records.values())

    async def find_by_id(self, record_id: str) -> Record | None:
        return self._records.get(record_id)

    async def delete_by_id(self, record_id: str) -> Record | None:
        return self._records.pop(record_id, None)
