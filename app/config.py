"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/数值等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

DEFAULT_QUEUE_NAME = "data-queue"
DEFAULT_LIST_CACHE_TTL_SECONDS = 60


class StoreConfig(BaseModel):
    """持久化存储（PostgreSQL）配置。"""

    dsn: str = Field(min_length=1)
    timeout_seconds: float = Field(default=5.0, gt=0)


class CacheConfig(BaseModel):
    """缓存（Redis）配置。"""

    url: str = Field(min_length=1)
    list_ttl_seconds: int = Field(default=DEFAULT_LIST_CACHE_TTL_SECONDS, gt=0)
    timeout_seconds: float = Field(default=1.0, gt=0)


class QueueConfig(BaseModel):
    """通知队列配置：best-effort，失败不影响请求结果。"""

    url: str = Field(min_length=1)
    name: str = Field(default=DEFAULT_QUEUE_NAME, min_length=1)
    timeout_seconds: float = Field(default=2.0, gt=0)
    buffer_size: int = Field(default=1000, gt=0)
    drain_seconds: float = Field(default=5.0, ge=0)


class AppConfig(BaseModel):
    """应用运行所需的配置集合。"""

    store: StoreConfig
    cache: CacheConfig
    queue: QueueConfig
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **必填**：`DATABASE_URL`、`REDIS_URL`
    - **可选**：`QUEUE_REDIS_URL`（默认复用 `REDIS_URL`）、`QUEUE_NAME`、
      `LIST_CACHE_TTL_SECONDS`、`STORE_TIMEOUT_SECONDS`、`CACHE_TIMEOUT_SECONDS`、
      `NOTIFY_TIMEOUT_SECONDS`、`NOTIFY_BUFFER_SIZE`、`NOTIFY_DRAIN_SECONDS`、`LOG_LEVEL`
    - **失败**：缺失/为空/非法值统一抛 `ValueError`
    """

    required_keys: tuple[str, ...] = ("DATABASE_URL", "REDIS_URL")
    missing: list[str] = [key for key in required_keys if key not in environ or not environ[key]]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    store: dict[str, object] = {"dsn": environ["DATABASE_URL"]}
    cache: dict[str, object] = {"url": environ["REDIS_URL"]}
    queue: dict[str, object] = {"url": environ.get("QUEUE_REDIS_URL") or environ["REDIS_URL"]}

    # 可选项：只有显式设置（且非空）时才覆盖默认值
    optional_fields: tuple[tuple[str, dict[str, object], str], ...] = (
        ("STORE_TIMEOUT_SECONDS", store, "timeout_seconds"),
        ("LIST_CACHE_TTL_SECONDS", cache, "list_ttl_seconds"),
        ("CACHE_TIMEOUT_SECONDS", cache, "timeout_seconds"),
        ("QUEUE_NAME", queue, "name"),
        ("NOTIFY_TIMEOUT_SECONDS", queue, "timeout_seconds"),
        ("NOTIFY_BUFFER_SIZE", queue, "buffer_size"),
        ("NOTIFY_DRAIN_SECONDS", queue, "drain_seconds"),
    )
    for env_key, target, field_name in optional_fields:
        value = environ.get(env_key)
        if value:
            target[field_name] = value

    log_level = (environ.get("LOG_LEVEL") or "INFO").upper()

    # 交给 Pydantic 做类型校验；对外统一成 ValueError
    try:
        return AppConfig.model_validate(
            {"store": store, "cache": cache, "queue": queue, "log_level": log_level}
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
