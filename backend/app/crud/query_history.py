"""
쿼리 이력 CRUD (추가/조회만, 수정·삭제 없음)
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.query_history import QueryHistory


async def create_query_history(db: AsyncSession, data: dict) -> QueryHistory:
    record = QueryHistory(
        tenant_id=data["tenant_id"],
        connection_id=data["connection_id"],
        user_id=data["user_id"],
        natural_query=data["natural_query"],
        generated_query=data.get("generated_query") or "",
        results=data.get("results") or [],
        execution_time_ms=data.get("execution_time_ms", 0),
        status=data["status"],
        error_message=data.get("error_message"),
        confidence=data.get("confidence"),
        advisory=data.get("advisory"),
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def list_query_history(db: AsyncSession, tenant_id: str, limit: int = 50) -> List[QueryHistory]:
    result = await db.execute(
        select(QueryHistory)
        .where(QueryHistory.tenant_id == tenant_id)
        .order_by(QueryHistory.created_at.desc(), QueryHistory.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_query_history(db: AsyncSession, tenant_id: str, query_id: int) -> Optional[QueryHistory]:
    result = await db.execute(
        select(QueryHistory)
        .where(QueryHistory.tenant_id == tenant_id, QueryHistory.id == query_id)
    )
    return result.scalar_one_or_none()


def to_response_dict(record: QueryHistory) -> dict:
    """응답 형태: 각 행을 {"data": row}로 감쌈"""
    return {
        "id": record.id,
        "connection_id": record.connection_id,
        "user_id": record.user_id,
        "natural_query": record.natural_query,
        "generated_query": record.generated_query or "",
        "results": [{"data": row} for row in (record.results or [])],
        "execution_time_ms": record.execution_time_ms or 0,
        "status": record.status,
        "error": record.error_message,
        "confidence": record.confidence,
        "advisory": record.advisory,
        "created_at": record.created_at,
    }
