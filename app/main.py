"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（Postgres store / Redis cache / Redis 队列 + 通知 dispatcher）
- 在 lifespan 里管理生命周期（启动建表 + 启动 dispatcher；关闭时 drain 通知并断开连接）

注意：
- 业务流程不写在这里（由 `records/service.py` 负责）
- 没有模块级连接单例：所有客户端都在 `build_app` 里创建并显式注入
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

import anyio
import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI
from redis.exceptions import RedisError

from app.config import load_config_from_env
from app.infra.cache import RedisCache
from app.infra.cache import create_redis_client
from app.infra.queue import NotificationDispatcher
from app.infra.queue import RedisQueueChannel
from app.infra.queue import run_dispatcher
from app.records.api import build_http_app
from app.records.service import build_record_service
from app.storage.pg import PgRecordStore
from app.storage.pg import RecordStorageClient
from app.storage.pg import ensure_schema

logger = logging.getLogger(__name__)


async def _ping_redis(client: redis.Redis, label: str) -> None:
    # Redis 是 best-effort 依赖：连不上只告警，不阻止启动
    try:
        await client.ping()
        logger.info(f"Connected to Redis ({label})")
    except RedisError as exc:
        logger.warning(f"Redis ({label}) not reachable at startup: {exc}")


def build_app(environ: Mapping[str, str] | None = None) -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ if environ is None else environ)
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # 2) 外部依赖客户端（连接在首次使用时建立）
    storage_client = RecordStorageClient(dsn=config.store.dsn, connect_timeout=config.store.timeout_seconds)
    cache_client = create_redis_client(url=config.cache.url, timeout_seconds=config.cache.timeout_seconds)
    if config.queue.url == config.cache.url:
        queue_client = cache_client
    else:
        queue_client = create_redis_client(url=config.queue.url, timeout_seconds=config.queue.timeout_seconds)

    # 3) 通知 dispatcher + 核心 service
    dispatcher = NotificationDispatcher(
        channel=RedisQueueChannel(client=queue_client),
        topic=config.queue.name,
        timeout_seconds=config.queue.timeout_seconds,
        buffer_size=config.queue.buffer_size,
    )
    service = build_record_service(
        store=PgRecordStore(client=storage_client, timeout_seconds=config.store.timeout_seconds),
        cache=RedisCache(client=cache_client, timeout_seconds=config.cache.timeout_seconds),
        notifier=dispatcher,
        list_ttl_seconds=config.cache.list_ttl_seconds,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        # store 是权威数据源：建表失败直接让启动失败
        await anyio.to_thread.run_sync(ensure_schema, storage_client)
        logger.info("Connected to PostgreSQL")
        await _ping_redis(cache_client, label="cache")
        if queue_client is not cache_client:
            await _ping_redis(queue_client, label="queue")

        try:
            async with run_dispatcher(dispatcher, drain_seconds=config.queue.drain_seconds):
                yield
        finally:
            await cache_client.aclose()
            if queue_client is not cache_client:
                await queue_client.aclose()
            logger.info("Connections closed")

    return build_http_app(service=service, lifespan=lifespan)


# Uvicorn 默认会从模块级变量 `app` 读取 ASGI 应用
app = build_app()


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "3000")))


if __name__ == "__main__":
    main()
