"""
RestApiAdapter - 일반 REST API 어댑터

"쿼리"는 "METHOD /path" 형태의 HTTP 호출문입니다 (메서드 생략 시 GET).
"""
import logging
import re
import time
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.errors import ExecutionFailure
from app.schemas.backend_config import ApiEndpoint, RestApiConfig
from app.schemas.data_connection import BackendType
from app.schemas.query import ColumnInfo, ConnectionTestResult, SchemaInfo, TableInfo
from app.services.adapters.base import BaseAdapter, describe_error, elapsed_ms

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")

_CALL_RE = re.compile(rf"^({'|'.join(HTTP_METHODS)})\s+(.+)$", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")

SCHEMA_PROBE_PATHS = (
    "/schema",
    "/api/schema",
    "/swagger.json",
    "/openapi.json",
    "/docs",
    "/api/docs",
)

# 공개 API 중 구조를 알고 있는 것 (URL 부분 문자열 → 엔드포인트)
KNOWN_API_CATALOGUES: Dict[str, List[ApiEndpoint]] = {
    "jsonplaceholder.typicode.com": [
        ApiEndpoint(method="GET", path=f"/{resource}{suffix}", description=desc.format(name=resource[:-1]))
        for resource in ("posts", "albums", "photos", "users", "comments", "todos")
        for suffix, desc in (("", "Get all {name}s"), ("/{id}", "Get a specific {name} by ID"))
    ],
}

GENERIC_ENDPOINTS = [
    ApiEndpoint(method="GET", path="/api/data", description="Get data from API"),
    ApiEndpoint(method="GET", path="/api/list", description="Get list of items"),
    ApiEndpoint(method="GET", path="/api/search", description="Search API"),
]

_ENDPOINT_COLUMNS = [
    ColumnInfo(name="method", type="string", nullable=False),
    ColumnInfo(name="path", type="string", nullable=False),
    ColumnInfo(name="response", type="json", nullable=True),
]

API_ENDPOINT_TABLE = TableInfo(name="api_endpoint", columns=list(_ENDPOINT_COLUMNS))

API_DATA_TABLE = TableInfo(
    name="api_data",
    columns=[
        ColumnInfo(name="endpoint", type="string", nullable=False),
        ColumnInfo(name="data", type="json", nullable=True),
    ],
)


def parse_api_call(call: str) -> tuple[str, str]:
    """'GET /users' → ('GET', '/users'), 메서드가 없으면 GET"""
    method, path = "GET", call.strip()
    m = _CALL_RE.match(path)
    if m:
        method, path = m.group(1).upper(), m.group(2).strip()
    if not path.startswith("/"):
        path = "/" + path
    return method, path


class RestApiAdapter(BaseAdapter):
    """일반 REST API 어댑터"""

    backend_type = BackendType.REST_API
    config_model = RestApiConfig
    display_name = "REST API"

    def _headers(self, config: RestApiConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["X-API-Key"] = config.api_key
            headers["Authorization"] = f"Bearer {config.api_key}"
        if config.bearer_token:
            headers["Authorization"] = f"Bearer {config.bearer_token}"
        for header in config.headers:
            if header.key:
                headers[header.key] = header.value
        return headers

    def _client(self, config: RestApiConfig) -> httpx.AsyncClient:
        auth = None
        if config.username and config.password:
            # Basic 인증이 Authorization 헤더를 대체
            auth = httpx.BasicAuth(config.username, config.password)
        return httpx.AsyncClient(
            headers=self._headers(config),
            auth=auth,
            timeout=config.timeout or settings.HTTP_TIMEOUT_SECONDS,
        )

    async def test_connection(self, config: RestApiConfig) -> ConnectionTestResult:
        started = time.perf_counter()
        try:
            async with self._client(config) as client:
                resp = await client.get(config.base_url)
        except httpx.HTTPError as e:
            return ConnectionTestResult(
                success=False,
                message=f"API connection failed: {describe_error(e)}",
            )

        if resp.status_code >= 500:
            return ConnectionTestResult(
                success=False,
                message=f"API connection failed: {resp.status_code} {resp.reason_phrase}",
            )
        return ConnectionTestResult(
            success=True,
            message=f"API connection successful (Status: {resp.status_code})",
            latency_ms=elapsed_ms(started),
        )

    async def introspect_schema(self, config: RestApiConfig) -> SchemaInfo:
        document = await self._probe_schema_document(config)
        if document is None:
            return SchemaInfo.from_tables([API_ENDPOINT_TABLE])

        if isinstance(document, dict) and (
            "paths" in document or "openapi" in document or "swagger" in document
        ):
            return SchemaInfo.from_tables(self._tables_from_openapi(document))

        return SchemaInfo.from_tables([API_DATA_TABLE])

    async def _probe_schema_document(self, config: RestApiConfig) -> Optional[Any]:
        """알려진 스키마 경로를 순서대로 조회, 처음으로 본문을 돌려준 문서 반환"""
        async with self._client(config) as client:
            for probe in SCHEMA_PROBE_PATHS:
                try:
                    resp = await client.get(f"{config.base_url}{probe}")
                    resp.raise_for_status()
                    document = resp.json()
                except (httpx.HTTPError, ValueError):
                    continue
                if document:
                    logger.info(f"[RestApi] schema document found at {probe}")
                    return document
        return None

    def _tables_from_openapi(self, document: dict) -> List[TableInfo]:
        paths = document.get("paths")
        if not isinstance(paths, dict):
            return [API_DATA_TABLE]

        tables = []
        for path, operations in paths.items():
            if not isinstance(operations, dict):
                continue
            for method in operations:
                if method.upper() not in HTTP_METHODS:
                    continue
                tables.append(
                    TableInfo(
                        name=f"{method.upper()}_{_NON_ALNUM_RE.sub('_', path)}",
                        columns=[
                            ColumnInfo(name="method", type="string", nullable=False, default=method.upper()),
                            ColumnInfo(name="path", type="string", nullable=False, default=path),
                            ColumnInfo(name="response", type="json", nullable=True),
                        ],
                    )
                )
        return tables or [API_ENDPOINT_TABLE]

    async def execute_query(self, config: RestApiConfig, query: str) -> List[dict]:
        method, path = parse_api_call(self.sanitize(query))
        url = f"{config.base_url}{path}"
        logger.info(f"[RestApi] {method} {url}")

        try:
            async with self._client(config) as client:
                resp = await client.request(method, url)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExecutionFailure(
                f"API query failed: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise ExecutionFailure(f"API query failed: {describe_error(e)}") from e

        try:
            body = resp.json()
        except ValueError:
            body = resp.text

        if isinstance(body, list):
            return body
        if isinstance(body, dict):
            return [body]
        return [{"result": body, "status": resp.status_code}]

    def list_endpoints(self, config: RestApiConfig) -> List[ApiEndpoint]:
        """API 번역에 제공할 엔드포인트 목록"""
        if config.endpoints:
            return list(config.endpoints)
        base_url = config.base_url
        for marker, endpoints in KNOWN_API_CATALOGUES.items():
            if marker in base_url:
                return list(endpoints)
        return list(GENERIC_ENDPOINTS)
