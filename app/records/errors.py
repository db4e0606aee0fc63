"""
Record 服务的错误分类。

传播策略：
- `ValidationError` / `NotFoundError` / `StoreError`：中止操作，向调用方暴露（400/404/500）
- `CacheError` / `NotificationError`：只记录日志，不影响调用方可见的结果
"""

from __future__ import annotations


class RecordServiceError(RuntimeError):
    """所有 record 相关错误的基类。"""

    pass


class ValidationError(RecordServiceError):
    """必填输入缺失（name/value 为空等）。"""

    pass


class NotFoundError(RecordServiceError):
    """引用的 record 在 store 中不存在。"""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class StoreError(RecordServiceError):
    """持久化存储 I/O 失败（包括超时）。"""

    pass


class CacheError(RecordServiceError):
    pass


class NotificationError(RecordServiceError):
    pass
