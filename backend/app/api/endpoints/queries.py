"""
자연어 쿼리 실행 / 이력 엔드포인트
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import TenantContext, get_query_engine, get_tenant_context, to_http_exception
from app.core.errors import QueryEngineError
from app.crud.query_history import to_response_dict
from app.schemas.query import AIQueryRequest, QueryHistoryListResponse, QueryHistoryResponse
from app.services.query_engine import QueryEngine

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=QueryHistoryResponse)
async def execute_natural_query(
    data: AIQueryRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: QueryEngine = Depends(get_query_engine),
):
    """
    자연어 질문 실행

    단계 실패(번역/안전성 검사/실행)는 HTTP 오류가 아니라 status=ERROR 이력으로 반환됩니다.
    """
    try:
        record = await engine.execute_query(
            ctx.tenant_id, ctx.user_id, data.connection_id, data.natural_query
        )
    except QueryEngineError as e:
        raise to_http_exception(e)
    return to_response_dict(record)


@router.get("", response_model=QueryHistoryListResponse)
async def list_query_history(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    ctx: TenantContext = Depends(get_tenant_context),
    engine: QueryEngine = Depends(get_query_engine),
):
    records = await engine.list_history(ctx.tenant_id, limit)
    return {"queries": [to_response_dict(r) for r in records]}


@router.get("/{query_id}", response_model=QueryHistoryResponse)
async def get_query_history(
    query_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: QueryEngine = Depends(get_query_engine),
):
    record = await engine.get_history(ctx.tenant_id, query_id)
    if not record:
        raise HTTPException(status_code=404, detail="쿼리 이력을 찾을 수 없습니다.")
    return to_response_dict(record)
