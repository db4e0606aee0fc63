"""
Record 领域模型（Pydantic）。

用途：
- HTTP 请求/响应结构
- 缓存里的 JSON 编解码（同一份 schema，避免缓存与接口漂移）
- 队列通知的消息结构
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

NotificationAction = Literal["register", "retrieve", "remove"]


class Record(BaseModel):
    """一条 key/value 记录；`id` 由 store 生成，创建后不可变。"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    value: str


RecordList = TypeAdapter(list[Record])


class RegisterRequest(BaseModel):
    """POST /register 的请求体；字段是否为空由 service 层校验（返回 400 而不是 422）。"""

    name: str | None = None
    value: str | None = None


class RemoveResponse(BaseModel):
    message: str
    id: str


class ErrorResponse(BaseModel):
    """对外错误结构：只有可读 message，不暴露堆栈/内部标识。"""

    error: str


class Notification(BaseModel):
    """
    发送到队列的通知（不可变）。

    线上格式沿用已有消费方的约定：`{"action": ..., "data": ...}`。
    """

    model_config = ConfigDict(frozen=True)

    action: NotificationAction
    payload: Record | list[Record] | str = Field(serialization_alias="data")

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")
