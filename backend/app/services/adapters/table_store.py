"""
TableStoreAdapter - REST로만 접근 가능한 가상 테이블 저장소 (PostgREST 계열, 예: Supabase)

실제 카탈로그가 없으므로:
- 스키마는 OpenAPI 문서의 paths에서 테이블 목록만 추정
- 실행은 단순 SELECT ... FROM t [LIMIT n] / SELECT COUNT(*) FROM t 만 지원
"""
import logging
import re
import time
from typing import Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.errors import ExecutionFailure
from app.schemas.backend_config import TableStoreConfig
from app.schemas.data_connection import BackendType
from app.schemas.query import ColumnInfo, ConnectionTestResult, SchemaInfo, TableInfo
from app.services.adapters.base import BaseAdapter, describe_error, elapsed_ms

logger = logging.getLogger(__name__)

_IDENT = r'"?(?:public\.)?([A-Za-z_][A-Za-z0-9_]*)"?'

_COUNT_RE = re.compile(
    rf"^SELECT\s+COUNT\s*\(\s*\*\s*\)\s+FROM\s+{_IDENT}\s*;?$",
    re.IGNORECASE,
)
_SELECT_RE = re.compile(
    rf"^SELECT\s+(?P<columns>.+?)\s+FROM\s+{_IDENT}(?:\s+LIMIT\s+(?P<limit>\d+))?\s*;?$",
    re.IGNORECASE | re.DOTALL,
)
_COLUMN_RE = re.compile(r'^"?([A-Za-z_][A-Za-z0-9_]*)"?$')

# OpenAPI에서 컬럼 정보를 얻을 수 없을 때 쓰는 대략적인 컬럼
_COARSE_COLUMNS = [
    ColumnInfo(name="id", type="uuid", nullable=False),
    ColumnInfo(name="created_at", type="timestamp", nullable=True),
    ColumnInfo(name="updated_at", type="timestamp", nullable=True),
]

# 구조를 전혀 찾지 못했을 때의 합성 테이블 (번역기에 빈 스키마를 주지 않기 위함, 제품 검토 대상)
FALLBACK_TABLE = TableInfo(
    name="table_store_api",
    columns=[
        ColumnInfo(name="endpoint", type="string", nullable=False),
        ColumnInfo(name="data", type="json", nullable=True),
    ],
)


class TableStoreAdapter(BaseAdapter):
    """가상 테이블 저장소 어댑터"""

    backend_type = BackendType.TABLE_STORE
    config_model = TableStoreConfig
    display_name = "Table store"

    def _headers(self, config: TableStoreConfig) -> Dict[str, str]:
        return {
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    def _timeout(self, config: TableStoreConfig) -> float:
        return config.timeout or settings.HTTP_TIMEOUT_SECONDS

    def _rest_url(self, config: TableStoreConfig, path: str = "/") -> str:
        return f"{config.base_url}/rest/v1{path}"

    async def test_connection(self, config: TableStoreConfig) -> ConnectionTestResult:
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self._timeout(config)) as client:
                resp = await client.get(self._rest_url(config), headers=self._headers(config))
        except httpx.HTTPError as e:
            return ConnectionTestResult(
                success=False,
                message=f"Table store connection failed: {describe_error(e)}",
            )

        # 4xx도 왕복 자체는 성공으로 간주
        if resp.status_code >= 500:
            return ConnectionTestResult(
                success=False,
                message=f"Table store connection failed: {resp.status_code} {resp.reason_phrase}",
            )
        return ConnectionTestResult(
            success=True,
            message=f"Table store connection successful (Status: {resp.status_code})",
            latency_ms=elapsed_ms(started),
        )

    async def introspect_schema(self, config: TableStoreConfig) -> SchemaInfo:
        try:
            async with httpx.AsyncClient(timeout=self._timeout(config)) as client:
                resp = await client.get(self._rest_url(config), headers=self._headers(config))
                resp.raise_for_status()
            document = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExecutionFailure(f"Failed to get table store schema: {describe_error(e)}") from e

        tables = self._tables_from_openapi(document)
        if not tables:
            logger.warning(
                f"[TableStore] no tables discoverable at {config.base_url}, using synthetic fallback table"
            )
            tables = [FALLBACK_TABLE]
        return SchemaInfo.from_tables(tables)

    def _tables_from_openapi(self, document) -> List[TableInfo]:
        paths = document.get("paths") if isinstance(document, dict) else None
        if not isinstance(paths, dict):
            return []
        tables = []
        for path in paths:
            # "/" (루트)와 "/rpc/..." 같은 하위 경로, "{id}" 파라미터 경로는 제외
            name = path.strip("/")
            if not name or "/" in name or "{" in name:
                continue
            tables.append(TableInfo(name=name, columns=list(_COARSE_COLUMNS)))
        return tables

    async def execute_query(self, config: TableStoreConfig, query: str) -> List[dict]:
        sanitized = self.sanitize(query)

        count_match = _COUNT_RE.match(sanitized)
        if count_match:
            return await self._count(config, count_match.group(1))

        select_match = _SELECT_RE.match(sanitized)
        if select_match:
            columns = self._parse_columns(select_match.group("columns"))
            if columns is not None:
                limit = select_match.group("limit")
                return await self._select(
                    config, select_match.group(2), columns, int(limit) if limit else None
                )

        raise ExecutionFailure(
            "Complex queries unsupported for table store backends. "
            "Use simple SELECT ... FROM table [LIMIT n] or SELECT COUNT(*) FROM table."
        )

    def _parse_columns(self, raw: str) -> Optional[List[str]]:
        """'*' → [], 'a, b' → ['a', 'b'], 식/함수가 섞이면 None (지원 불가)"""
        raw = raw.strip()
        if raw == "*":
            return []
        columns = []
        for part in raw.split(","):
            m = _COLUMN_RE.match(part.strip())
            if not m:
                return None
            columns.append(m.group(1))
        return columns

    async def _select(
        self,
        config: TableStoreConfig,
        table: str,
        columns: List[str],
        limit: Optional[int],
    ) -> List[dict]:
        params: Dict[str, str] = {}
        if columns:
            params["select"] = ",".join(columns)
        if limit is not None:
            params["limit"] = str(limit)

        try:
            async with httpx.AsyncClient(timeout=self._timeout(config)) as client:
                resp = await client.get(
                    self._rest_url(config, f"/{table}"),
                    headers=self._headers(config),
                    params=params,
                )
                resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise ExecutionFailure(
                f"Table store query failed: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExecutionFailure(f"Table store query failed: {describe_error(e)}") from e

        return data if isinstance(data, list) else [data]

    async def _count(self, config: TableStoreConfig, table: str) -> List[dict]:
        headers = self._headers(config)
        headers["Prefer"] = "count=exact"
        try:
            async with httpx.AsyncClient(timeout=self._timeout(config)) as client:
                resp = await client.head(self._rest_url(config, f"/{table}"), headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExecutionFailure(
                f"Table store query failed: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise ExecutionFailure(f"Table store query failed: {describe_error(e)}") from e

        # Content-Range: "0-24/3573" 또는 "*/0"
        total = resp.headers.get("content-range", "").split("/")[-1]
        return [{"count": int(total) if total.isdigit() else 0}]
