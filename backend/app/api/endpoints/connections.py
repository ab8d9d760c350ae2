"""
데이터 연결 관리 엔드포인트 (MySQL / PostgreSQL / 가상 테이블 저장소 / REST API)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import TenantContext, get_query_engine, get_tenant_context, to_http_exception
from app.core.errors import QueryEngineError
from app.crud.data_connection import (
    create_connection,
    delete_connection,
    get_connection,
    list_connections,
    to_public_dict,
    update_connection,
)
from app.db.session import get_db
from app.schemas.data_connection import (
    ConnectionTestRequest,
    DataConnectionCreate,
    DataConnectionListResponse,
    DataConnectionResponse,
    DataConnectionUpdate,
)
from app.schemas.query import ConnectionTestResult, SchemaInfo
from app.services.adapters import get_adapter
from app.services.query_engine import QueryEngine

logger = logging.getLogger(__name__)
router = APIRouter()


def _validate_config(backend_type, config: dict) -> None:
    """저장 전에 백엔드별 설정 형식 확인"""
    try:
        get_adapter(backend_type).parse_config(config)
    except QueryEngineError as e:
        raise to_http_exception(e)


async def _get_or_404(db: AsyncSession, tenant_id: str, conn_id: str):
    conn = await get_connection(db, tenant_id, conn_id)
    if not conn:
        raise HTTPException(status_code=404, detail="연결을 찾을 수 없습니다.")
    return conn


def _to_response(conn) -> DataConnectionResponse:
    try:
        return DataConnectionResponse(**to_public_dict(conn))
    except QueryEngineError as e:
        raise to_http_exception(e)


@router.get("", response_model=DataConnectionListResponse)
async def list_data_connections(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
):
    connections = await list_connections(db, ctx.tenant_id)
    return {"connections": [_to_response(c) for c in connections]}


@router.post("", response_model=DataConnectionResponse, status_code=201)
async def create_data_connection(
    data: DataConnectionCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
):
    _validate_config(data.backend_type, data.config)
    conn = await create_connection(db, ctx.tenant_id, data.model_dump())
    logger.info(f"[Connections] created {conn.conn_id} ({conn.backend_type}) for tenant {ctx.tenant_id}")
    return _to_response(conn)


@router.post("/test", response_model=ConnectionTestResult)
async def test_new_connection(
    data: ConnectionTestRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: QueryEngine = Depends(get_query_engine),
):
    """저장하지 않은 설정으로 연결 테스트"""
    try:
        return await engine.test_connection(data.backend_type, data.config)
    except QueryEngineError as e:
        raise to_http_exception(e)


@router.get("/{conn_id}", response_model=DataConnectionResponse)
async def get_data_connection(
    conn_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
):
    conn = await _get_or_404(db, ctx.tenant_id, conn_id)
    return _to_response(conn)


@router.put("/{conn_id}", response_model=DataConnectionResponse)
async def update_data_connection(
    conn_id: str,
    data: DataConnectionUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
):
    conn = await _get_or_404(db, ctx.tenant_id, conn_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("config") is not None:
        _validate_config(conn.backend_type, updates["config"])

    updated = await update_connection(db, conn, updates)
    return _to_response(updated)


@router.delete("/{conn_id}")
async def delete_data_connection(
    conn_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
):
    deleted = await delete_connection(db, ctx.tenant_id, conn_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="연결을 찾을 수 없습니다.")
    return {"detail": "삭제되었습니다."}


@router.post("/{conn_id}/test", response_model=ConnectionTestResult)
async def test_saved_connection(
    conn_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: QueryEngine = Depends(get_query_engine),
):
    """저장된 연결 테스트 (결과에 따라 status / last_tested_at 갱신)"""
    try:
        return await engine.test_existing_connection(ctx.tenant_id, conn_id)
    except QueryEngineError as e:
        raise to_http_exception(e)


@router.get("/{conn_id}/schema", response_model=SchemaInfo)
async def get_connection_schema(
    conn_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: QueryEngine = Depends(get_query_engine),
):
    try:
        return await engine.get_schema_info(ctx.tenant_id, conn_id)
    except QueryEngineError as e:
        raise to_http_exception(e)
