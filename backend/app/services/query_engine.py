"""
QueryEngine - 자연어 쿼리 실행 오케스트레이터

흐름: 연결 조회 → 설정 복호화/검증 → 스키마 조회 (API 제외) → 번역 → sanitize → 실행 → 이력 저장

- 연결 없음 / 설정 오류: 이력 없이 예외 전파
- 그 외 단계 실패: status=ERROR, 빈 결과로 이력 1건 저장 후 반환
"""
import logging
import time
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    ConfigurationError,
    ConnectionNotFound,
    QueryEngineError,
    TranslationFailure,
    UnsupportedBackendOperation,
)
from app.crud import data_connection as connection_crud
from app.crud import query_history as history_crud
from app.models.data_connection import DataConnection
from app.models.query_history import QueryHistory
from app.schemas.data_connection import BackendType
from app.schemas.query import ConnectionTestResult, QueryStatus, SchemaInfo, TranslationResult
from app.services.adapters import BaseAdapter, get_adapter, is_api_backend
from app.services.adapters.base import elapsed_ms
from app.services.query_translator import REVIEW_THRESHOLD, QueryTranslator

logger = logging.getLogger(__name__)

# 가상 테이블 저장소는 PostgreSQL 문법으로 번역 (단순 SELECT만 실행 가능)
_PROMPT_DIALECTS = {
    BackendType.MYSQL: "MySQL",
    BackendType.POSTGRESQL: "PostgreSQL",
    BackendType.TABLE_STORE: "PostgreSQL",
}


class QueryEngine:
    """요청 단위 오케스트레이터 (DB 세션과 번역기를 주입받음)"""

    def __init__(self, db: AsyncSession, translator: QueryTranslator):
        self.db = db
        self.translator = translator

    async def _load_connection(self, tenant_id: str, connection_id: str) -> DataConnection:
        conn = await connection_crud.get_connection(self.db, tenant_id, connection_id)
        if conn is None:
            raise ConnectionNotFound(f"Connection not found: {connection_id}")
        return conn

    def _resolve(self, conn: DataConnection):
        adapter = get_adapter(conn.backend_type)
        config = adapter.parse_config(connection_crud.get_decrypted_config(conn))
        return adapter, config

    # ------------------------------------------------------------
    # 쿼리 실행
    # ------------------------------------------------------------

    async def _translate(self, adapter: BaseAdapter, config, natural_query: str) -> TranslationResult:
        if is_api_backend(adapter.backend_type):
            endpoints = adapter.list_endpoints(config)
            return await self.translator.translate_to_api_call(natural_query, endpoints)

        schema = await adapter.introspect_schema(config)
        return await self.translator.translate_to_query(
            natural_query,
            dialect=_PROMPT_DIALECTS.get(adapter.backend_type, "SQL"),
            database=getattr(config, "database", None),
            schema=schema,
        )

    async def execute_query(
        self,
        tenant_id: str,
        user_id: str,
        connection_id: str,
        natural_query: str,
    ) -> QueryHistory:
        conn = await self._load_connection(tenant_id, connection_id)
        adapter, config = self._resolve(conn)

        started = time.perf_counter()
        translation: Optional[TranslationResult] = None
        rows: List[dict] = []
        error: Optional[str] = None

        try:
            translation = await self._translate(adapter, config, natural_query)
            if translation.is_error:
                raise TranslationFailure(translation.explanation or "Translation failed")
            rows = await adapter.execute_query(config, translation.query)
        except QueryEngineError as e:
            error = str(e)
            rows = []
            logger.warning(f"[QueryEngine] {type(e).__name__} on {connection_id}: {error}")

        advisory = None
        if translation is not None and not translation.is_error and translation.confidence < REVIEW_THRESHOLD:
            advisory = translation.explanation

        record = await history_crud.create_query_history(
            self.db,
            {
                "tenant_id": tenant_id,
                "connection_id": conn.conn_id,
                "user_id": user_id,
                "natural_query": natural_query,
                "generated_query": translation.query if translation is not None else "",
                "results": rows,
                "execution_time_ms": elapsed_ms(started),
                "status": (QueryStatus.ERROR if error else QueryStatus.SUCCESS).value,
                "error_message": error,
                "confidence": translation.confidence if translation is not None else None,
                "advisory": advisory,
            },
        )
        logger.info(
            f"[QueryEngine] query #{record.id} {record.status} "
            f"({len(rows)} rows, {record.execution_time_ms}ms)"
        )
        return record

    # ------------------------------------------------------------
    # 연결 테스트 / 스키마
    # ------------------------------------------------------------

    async def test_connection(self, backend_type, raw_config: dict) -> ConnectionTestResult:
        adapter = get_adapter(backend_type)
        config = adapter.parse_config(raw_config)
        return await self._test(adapter, config)

    async def _test(self, adapter: BaseAdapter, config) -> ConnectionTestResult:
        result = await adapter.test_connection(config)
        if result.success and not is_api_backend(adapter.backend_type):
            # 스키마 미리보기는 부가 정보, 실패해도 테스트 결과는 유지
            try:
                result.schema_preview = await adapter.introspect_schema(config)
            except QueryEngineError as e:
                logger.warning(f"[QueryEngine] schema preview skipped: {e}")
        return result

    async def test_existing_connection(self, tenant_id: str, connection_id: str) -> ConnectionTestResult:
        conn = await self._load_connection(tenant_id, connection_id)
        try:
            adapter, config = self._resolve(conn)
        except ConfigurationError:
            # 복호화/검증 실패도 실패한 테스트로 상태 반영
            await connection_crud.mark_tested(self.db, conn, False)
            logger.warning(f"[QueryEngine] stored config for {connection_id} is unusable")
            raise
        result = await self._test(adapter, config)
        await connection_crud.mark_tested(self.db, conn, result.success)
        return result

    async def get_schema_info(self, tenant_id: str, connection_id: str) -> SchemaInfo:
        conn = await self._load_connection(tenant_id, connection_id)
        if is_api_backend(conn.backend_type):
            raise UnsupportedBackendOperation("Schema information is not available for API connections")
        adapter, config = self._resolve(conn)
        return await adapter.introspect_schema(config)

    # ------------------------------------------------------------
    # 이력 조회
    # ------------------------------------------------------------

    async def list_history(self, tenant_id: str, limit: Optional[int] = None) -> List[QueryHistory]:
        return await history_crud.list_query_history(
            self.db, tenant_id, limit or settings.HISTORY_DEFAULT_LIMIT
        )

    async def get_history(self, tenant_id: str, query_id: int) -> Optional[QueryHistory]:
        return await history_crud.get_query_history(self.db, tenant_id, query_id)
