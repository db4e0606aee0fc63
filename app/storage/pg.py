from __future__ import annotations

import functools
import logging
import math
from collections.abc import Callable
from typing import TypeVar

import anyio
import psycopg

from app.records.errors import StoreError
from app.records.models import Record

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordStorageClient:
    """Postgres 连接器（psycopg 3，同步 API；异步侧通过线程调用）。"""

    def __init__(self, dsn: str, connect_timeout: float) -> None:
        self._dsn = dsn
        self._connect_timeout = max(1, math.ceil(connect_timeout))

    def connect(self) -> psycopg.Connection:
        return psycopg.connect(self._dsn, connect_timeout=self._connect_timeout)


def ensure_schema(client: RecordStorageClient) -> None:
    with client.connect() as conn:
        with conn.cursor() as cur:
            # seq 只用于稳定排序（插入顺序），不对外暴露
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    seq BIGSERIAL NOT NULL,
                    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
                    name TEXT NOT NULL,
                    value TEXT NOT NULL
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_records_seq ON records (seq)")
        conn.commit()


def insert_record(client: RecordStorageClient, name: str, value: str) -> Record:
    with client.connect() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "INSERT INTO records (name, value) VALUES (%s, %s) RETURNING id, name, value",
                (name, value),
            )
            row = cur.fetchone()
        conn.commit()
    if row is None:
        raise StoreError("INSERT did not return the created record")
    return Record(id=row[0], name=row[1], value=row[2])


def list_records(client: RecordStorageClient) -> list[Record]:
    with client.connect() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT id, name, value FROM records ORDER BY seq")
            rows = cur.fetchall()
    return [Record(id=row[0], name=row[1], value=row[2]) for row in rows]


def get_record(client: RecordStorageClient, record_id: str) -> Record | None:
    with client.connect() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT id, name, value FROM records WHERE id = %s", (record_id,))
            row = cur.fetchone()
    if row is None:
        return None
    return Record(id=row[0], name=row[1], value=row[2])


def delete_record(client: RecordStorageClient, record_id: str) -> Record | None:
    with client.connect() as conn:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM records WHERE id = %s RETURNING id, name, value", (record_id,))
            row = cur.fetchone()
        conn.commit()
    if row is None:
        return None
    return Record(id=row[0], name=row[1], value=row[2])


class PgRecordStore:
    """
    `RecordStore` 的 Postgres 实现。

    - 每次调用都在 worker 线程里跑同步 psycopg（不阻塞事件循环）
    - `timeout_seconds` 是调用方 deadline：超时/数据库错误统一转成 `StoreError`
    """

    def __init__(self, client: RecordStorageClient, timeout_seconds: float) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def _run(self, func: Callable[..., T], *args: str) -> T:
        call = functools.partial(func, self._client, *args)
        try:
            with anyio.fail_after(self._timeout_seconds):
                return await anyio.to_thread.run_sync(call, abandon_on_cancel=True)
        except TimeoutError as exc:
            logger.error(f"Store call {func.__name__} timed out after {self._timeout_seconds}s")
            raise StoreError(f"Store call {func.__name__} timed out") from exc
        except psycopg.Error as exc:
            logger.error(f"Store call {func.__name__} failed: {exc}")
            raise StoreError(f"Store call {func.__name__} failed") from exc

    async def create(self, name: str, value: str) -> Record:
        return await self._run(insert_record, name, value)

    async def find_all(self) -> list[Record]:
        return await self._run(list_records)

    async def find_by_id(self, record_id: str) -> Record | None:
        return await self._run(get_record, record_id)

    async def delete_by_id(self, record_id: str) -> Record | None:
        return await self._run(delete_record, record_id)
