from __future__ import annotations

import time

import psycopg
import pytest

from app.records.errors import StoreError
from app.records.models import Record
from app.storage import pg
from app.storage.pg import PgRecordStore
from app.storage.pg import RecordStorageClient

pytestmark = pytest.mark.anyio


@pytest.fixture
def pg_store() -> PgRecordStore:
    client = RecordStorageClient(dsn="postgresql://unused", connect_timeout=0.2)
    return PgRecordStore(client=client, timeout_seconds=0.2)


async def test_store_runs_queries_with_client(monkeypatch: pytest.MonkeyPatch, pg_store: PgRecordStore) -> None:
    seen: list[tuple[object, ...]] = []

    def fake_insert(client: RecordStorageClient, name: str, value: str) -> Record:
        seen.append((client, name, value))
        return Record(id="generated", name=name, value=value)

    monkeypatch.setattr(pg, "insert_record", fake_insert)

    record = await pg_store.create("a", "1")

    assert record == Record(id="generated", name="a", value="1")
    assert seen[0][1:] == ("a", "1")
    assert isinstance(seen[0][0], RecordStorageClient)


async def test_store_wraps_database_errors(monkeypatch: pytest.MonkeyPatch, pg_store: PgRecordStore) -> None:
    def broken(client: RecordStorageClient) -> list[Record]:
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(pg, "list_records", broken)

    with pytest.raises(StoreError):
        await pg_store.find_all()


async def test_store_call_deadline(monkeypatch: pytest.MonkeyPatch, pg_store: PgRecordStore) -> None:
    def slow(client: RecordStorageClient, record_id: str) -> Record | None:
        time.sleep(1.0)
        return None

    monkeypatch.setattr(pg, "delete_record", slow)

    started = time.monotonic()
    with pytest.raises(StoreError):
        await pg_store.delete_by_id("x")
    assert time.monotonic() - started < 0.9
