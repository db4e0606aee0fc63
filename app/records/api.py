"""
Record HTTP 接入层。

职责：
- 解析请求 -> 调用 `RecordService`
- 把错误分类映射成状态码 + `{"error": "..."}`（不暴露堆栈/内部标识）

注意：业务流程不写在这里（由 `records/service.py` 负责）。
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from fastapi import APIRouter
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from app.records.errors import NotFoundError
from app.records.errors import StoreError
from app.records.errors import ValidationError
from app.records.models import ErrorResponse
from app.records.models import RecordList
from app.records.models import RegisterRequest
from app.records.models import RemoveResponse
from app.records.service import RecordService

logger = logging.getLogger(__name__)

Lifespan = Callable[[FastAPI], AbstractAsyncContextManager[None]]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def build_records_router(service: RecordService) -> APIRouter:
    """创建 record 路由（register / list / get / remove）。"""
    router = APIRouter()

    @router.post("/register")
    async def register(request: Request) -> JSONResponse:
        # 手动解析 body：缺字段返回 400（而不是 FastAPI 默认的 422）
        body = await request.body()
        try:
            req = RegisterRequest.model_validate(json.loads(body or b"{}"))
        except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError):
            return _error(400, "Name and value are required")

        try:
            record = await service.register(name=req.name, value=req.value)
        except ValidationError as exc:
            return _error(400, str(exc))
        except StoreError as exc:
            logger.error(f"Error saving data: {exc}")
            return _error(500, "Failed to register data")
        return JSONResponse(status_code=201, content=record.model_dump())

    @router.get("/data")
    async def list_data() -> JSONResponse:
        try:
            records = await service.list_records()
        except StoreError as exc:
            logger.error(f"Error retrieving data: {exc}")
            return _error(500, "Failed to retrieve data")
        return JSONResponse(status_code=200, content=RecordList.dump_python(records, mode="json"))

    @router.get("/data/{record_id}")
    async def get_data(record_id: str) -> JSONResponse:
        try:
            record = await service.get_record(record_id)
        except NotFoundError:
            return _error(404, "Data not found")
        except StoreError as exc:
            logger.error(f"Error retrieving data {record_id}: {exc}")
            return _error(500, "Failed to retrieve data")
        return JSONResponse(status_code=200, content=record.model_dump())

    @router.delete("/data/{record_id}")
    async def remove_data(record_id: str) -> JSONResponse:
        try:
            removed_id = await service.remove(record_id)
        except NotFoundError:
            return _error(404, "Data not found")
        except StoreError as exc:
            logger.error(f"Error removing data {record_id}: {exc}")
            return _error(500, "Failed to remove data")
        return JSONResponse(status_code=200, content=RemoveResponse(message="Data removed", id=removed_id).model_dump())

    return router


def build_http_app(service: RecordService, lifespan: Lifespan | None = None) -> FastAPI:
    """装配完整 HTTP app（health + record 路由）；生产/本地/测试共用。"""
    app = FastAPI(title="Record Service", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    app.include_router(build_records_router(service=service))
    return app
