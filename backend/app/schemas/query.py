"""자연어 쿼리 / 스키마 / 실행 결과 스키마"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================
# 스키마 정보 (조회 시점 스냅샷, 저장하지 않음)
# ============================================================

class ColumnInfo(BaseModel):
    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None


class TableInfo(BaseModel):
    name: str
    columns: List[ColumnInfo] = Field(default_factory=list)


class SchemaInfo(BaseModel):
    tables: List[TableInfo] = Field(default_factory=list)
    total_tables: int = 0

    @classmethod
    def from_tables(cls, tables: List[TableInfo]) -> "SchemaInfo":
        return cls(tables=tables, total_tables=len(tables))


# ============================================================
# 번역 결과
# ============================================================

class QueryKind(str, Enum):
    RELATIONAL_QUERY = "relational-query"
    API_CALL = "api-call"
    TRANSLATION_ERROR = "translation-error"


class TranslationResult(BaseModel):
    query: str = ""
    kind: QueryKind
    confidence: float = Field(..., ge=0.0, le=1.0)
    explanation: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.kind == QueryKind.TRANSLATION_ERROR


# ============================================================
# 연결 테스트
# ============================================================

class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    latency_ms: Optional[int] = None
    schema_preview: Optional[SchemaInfo] = None


# ============================================================
# 쿼리 실행 / 이력
# ============================================================

class QueryStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class AIQueryRequest(BaseModel):
    connection_id: str = Field(..., min_length=1)
    natural_query: str = Field(..., min_length=1, max_length=2000, description="자연어 질문")


class QueryResultRow(BaseModel):
    data: Any


class QueryHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    connection_id: str
    user_id: str
    natural_query: str
    generated_query: str
    results: List[QueryResultRow]
    execution_time_ms: int
    status: QueryStatus
    error: Optional[str] = None
    confidence: Optional[float] = None
    advisory: Optional[str] = None
    created_at: Optional[datetime] = None


class QueryHistoryListResponse(BaseModel):
    queries: List[QueryHistoryResponse]
