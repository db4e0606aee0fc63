from __future__ import annotations

import pytest

from app.config import load_config_from_env


def _base_environ() -> dict[str, str]:
    return {"DATABASE_URL": "postgresql://app@localhost:5432/mydb", "REDIS_URL": "redis://localhost:6379/0"}


def test_load_config_requires_database_and_redis() -> None:
    with pytest.raises(ValueError):
        load_config_from_env(environ={})


def test_load_config_rejects_empty_required_value() -> None:
    environ = _base_environ()
    environ["REDIS_URL"] = ""
    with pytest.raises(ValueError, match="REDIS_URL"):
        load_config_from_env(environ=environ)


def test_load_config_defaults() -> None:
    cfg = load_config_from_env(environ=_base_environ())
    assert cfg.store.dsn == "postgresql://app@localhost:5432/mydb"
    assert cfg.cache.list_ttl_seconds == 60
    assert cfg.queue.url == "redis://localhost:6379/0"
    assert cfg.queue.name == "data-queue"
    assert cfg.log_level == "INFO"


def test_load_config_overrides() -> None:
    environ = _base_environ()
    environ.update(
        {
            "QUEUE_REDIS_URL": "redis://queue:6379/1",
            "QUEUE_NAME": "records",
            "LIST_CACHE_TTL_SECONDS": "30",
            "STORE_TIMEOUT_SECONDS": "2.5",
            "NOTIFY_BUFFER_SIZE": "10",
            "LOG_LEVEL": "debug",
        }
    )
    cfg = load_config_from_env(environ=environ)
    assert cfg.queue.url == "redis://queue:6379/1"
    assert cfg.queue.name == "records"
    assert cfg.queue.buffer_size == 10
    assert cfg.cache.list_ttl_seconds == 30
    assert cfg.store.timeout_seconds == 2.5
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize("key,value", [("LIST_CACHE_TTL_SECONDS", "0"), ("NOTIFY_BUFFER_SIZE", "many"), ("LOG_LEVEL", "verbose")])
def test_load_config_rejects_invalid_values(key: str, value: str) -> None:
    environ = _base_environ()
    environ[key] = value
    with pytest.raises(ValueError):
        load_config_from_env(environ=environ)
