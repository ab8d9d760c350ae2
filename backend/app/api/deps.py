"""
API 공통 의존성
- 테넌트/사용자 식별: 업스트림 게이트웨이가 넣어주는 헤더 사용 (인증은 이 서비스 범위 밖)
- 쿼리 엔진 생성
- 서비스 예외 → HTTPException 변환
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    ConfigurationError,
    ConnectionNotFound,
    ExecutionFailure,
    QueryEngineError,
    TranslationFailure,
    UnsafeQuery,
    UnsupportedBackendOperation,
)
from app.db.session import get_db
from app.services.query_engine import QueryEngine
from app.services.query_translator import QueryTranslator, get_query_translator


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    user_id: str


async def get_tenant_context(
    x_tenant_id: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> TenantContext:
    if not x_tenant_id or not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Tenant-Id / X-User-Id 헤더가 필요합니다.",
        )
    return TenantContext(tenant_id=x_tenant_id.strip(), user_id=x_user_id.strip())


async def get_query_engine(
    db: AsyncSession = Depends(get_db),
    translator: QueryTranslator = Depends(get_query_translator),
) -> QueryEngine:
    return QueryEngine(db, translator)


_STATUS_BY_ERROR = (
    (ConnectionNotFound, status.HTTP_404_NOT_FOUND),
    (UnsupportedBackendOperation, status.HTTP_400_BAD_REQUEST),
    (UnsafeQuery, status.HTTP_400_BAD_REQUEST),
    (ConfigurationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TranslationFailure, status.HTTP_502_BAD_GATEWAY),
    (ExecutionFailure, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(e: QueryEngineError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(e, error_type):
            return HTTPException(status_code=status_code, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
