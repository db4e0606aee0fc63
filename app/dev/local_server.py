"""
本地 Record 服务（全内存依赖，不需要 Postgres/Redis）。

用途：
- 在没有外部依赖的情况下，本地跑通：
  register -> list -> remove，并观察队列里收到的通知

启动：
  python -m app.dev.local_server
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from app.config import DEFAULT_QUEUE_NAME
from app.infra.cache import InMemoryCache
from app.infra.queue import InMemoryChannel
from app.infra.queue import NotificationDispatcher
from app.infra.queue import run_dispatcher
from app.records.api import build_http_app
from app.records.service import build_record_service
from app.storage.store import InMemoryRecordStore


def build_local_app() -> FastAPI:
    """创建全内存依赖的 app；每次调用都是一套独立的 store/cache/channel。"""
    channel = InMemoryChannel()
    dispatcher = NotificationDispatcher(channel=channel, topic=DEFAULT_QUEUE_NAME, timeout_seconds=1.0, buffer_size=100)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        async with run_dispatcher(dispatcher, drain_seconds=1.0):
            yield

    app = build_http_app(
        service=build_record_service(store=InMemoryRecordStore(), cache=InMemoryCache(), notifier=dispatcher),
        lifespan=lifespan,
    )

    @app.get("/__debug__/notifications")
    async def debug_notifications() -> dict[str, object]:
        messages = [{"topic": topic, "message": json.loads(payload)} for topic, payload in channel.messages]
        return {"count": len(messages), "notifications": messages}

    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(build_local_app(), host="127.0.0.1", port=3000)


if __name__ == "__main__":
    main()
