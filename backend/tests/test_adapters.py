"""
백엔드 어댑터 단위 테스트
- RelationalAdapter: 엔진 생성/해제 쌍, 결과 변환 (드라이버 모킹)
- TableStoreAdapter / RestApiAdapter: httpx.MockTransport로 HTTP 모킹
- 레지스트리
"""
import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.core.errors import (
    ConfigurationError,
    ExecutionFailure,
    UnsafeQuery,
    UnsupportedBackendOperation,
)
from app.schemas.data_connection import BackendType
from app.services.adapters import get_adapter, is_api_backend
from app.services.adapters.relational import (
    MYSQL_DIALECT,
    POSTGRESQL_DIALECT,
    RelationalAdapter,
    is_managed_host,
)
from app.services.adapters.rest_api import RestApiAdapter, parse_api_call
from app.services.adapters.table_store import TableStoreAdapter

_RealAsyncClient = httpx.AsyncClient


def mock_http(handler):
    """어댑터 내부의 httpx.AsyncClient를 MockTransport 기반 클라이언트로 교체"""
    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return _RealAsyncClient(*args, **kwargs)

    return patch("httpx.AsyncClient", side_effect=factory)


# ============================================================
# Relational
# ============================================================

class FakeEngine:
    """connect()/dispose() 호출 횟수를 기록하는 SQLAlchemy 엔진 대역"""

    def __init__(self, conn=None, connect_error=None):
        self.conn = conn or MagicMock()
        self.connect_error = connect_error
        self.opened = 0
        self.disposed = 0

    def connect(self):
        self.opened += 1
        if self.connect_error:
            raise self.connect_error
        ctx = MagicMock()
        ctx.__enter__.return_value = self.conn
        ctx.__exit__.return_value = False
        return ctx

    def dispose(self):
        self.disposed += 1


@pytest.fixture
def mysql_adapter():
    return RelationalAdapter(MYSQL_DIALECT)


class TestRelationalAdapter:

    @pytest.mark.asyncio
    async def test_connection_success_disposes_engine(self, mysql_adapter, mysql_config):
        engine = FakeEngine()
        engine.conn.execute.return_value.scalar.return_value = 1
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine", return_value=engine):
            result = await mysql_adapter.test_connection(config)

        assert result.success is True
        assert result.message == "MySQL connection successful"
        assert result.latency_ms is not None
        assert engine.opened == engine.disposed == 1

    @pytest.mark.asyncio
    async def test_connection_failure_reports_and_disposes(self, mysql_adapter, mysql_config):
        engine = FakeEngine(connect_error=RuntimeError("Access denied for user 'reader'"))
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine", return_value=engine):
            result = await mysql_adapter.test_connection(config)

        assert result.success is False
        assert "Access denied" in result.message
        assert engine.disposed == 1

    @pytest.mark.asyncio
    async def test_every_call_opens_and_closes_one_engine(self, mysql_adapter, mysql_config):
        """성공/실패와 관계없이 열린 엔진 수 == 해제된 엔진 수"""
        engines = [FakeEngine(), FakeEngine(connect_error=RuntimeError("down")), FakeEngine()]
        for e in engines:
            e.conn.exec_driver_sql.return_value.returns_rows = False
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine", side_effect=engines):
            await mysql_adapter.execute_query(config, "SELECT 1")
            with pytest.raises(ExecutionFailure):
                await mysql_adapter.execute_query(config, "SELECT 1")
            await mysql_adapter.test_connection(config)

        assert sum(e.opened for e in engines) == sum(e.disposed for e in engines) == 3

    @pytest.mark.asyncio
    async def test_execute_returns_json_safe_rows(self, mysql_adapter, mysql_config):
        engine = FakeEngine()
        result = engine.conn.exec_driver_sql.return_value
        result.returns_rows = True
        result.mappings.return_value = [
            {
                "id": 1,
                "price": Decimal("9.50"),
                "sold_at": datetime(2024, 5, 1, 12, 0),
                "avatar": b"\x89PNG\xff",
                "thumb": memoryview(b"\x00\x01"),
            },
        ]
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine", return_value=engine):
            rows = await mysql_adapter.execute_query(config, "SELECT id, price, sold_at, avatar, thumb FROM sales")

        assert rows == [{
            "id": 1,
            "price": 9.5,
            "sold_at": "2024-05-01T12:00:00",
            "avatar": "iVBOR/8=",
            "thumb": "AAE=",
        }]
        engine.conn.exec_driver_sql.assert_called_once_with("SELECT id, price, sold_at, avatar, thumb FROM sales")
        json.dumps(rows)

    @pytest.mark.asyncio
    async def test_execute_rejects_unsafe_query_without_connecting(self, mysql_adapter, mysql_config):
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine") as create:
            with pytest.raises(UnsafeQuery):
                await mysql_adapter.execute_query(config, "DELETE FROM users")

        create.assert_not_called()

    @pytest.mark.asyncio
    async def test_introspect_mysql_decodes_catalog_bytes(self, mysql_adapter, mysql_config):
        engine = FakeEngine()

        def execute(statement, *args):
            sql = str(statement)
            if sql == "SHOW TABLES":
                return [(b"users",)]
            described = MagicMock()
            described.mappings.return_value = [
                {"Field": "id", "Type": b"int", "Null": "NO", "Default": None},
                {"Field": "name", "Type": b"varchar(100)", "Null": "YES", "Default": b"anon"},
            ]
            return described

        engine.conn.execute.side_effect = execute
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine", return_value=engine):
            schema = await mysql_adapter.introspect_schema(config)

        assert schema.total_tables == 1
        users = schema.tables[0]
        assert users.name == "users"
        assert [(c.name, c.type, c.nullable, c.default) for c in users.columns] == [
            ("id", "int", False, None),
            ("name", "varchar(100)", True, "anon"),
        ]

    @pytest.mark.asyncio
    async def test_introspect_failure_raises_execution_failure(self, mysql_adapter, mysql_config):
        engine = FakeEngine(connect_error=RuntimeError("Unknown database 'shop'"))
        config = mysql_adapter.parse_config(mysql_config)

        with patch("app.services.adapters.relational.create_engine", return_value=engine):
            with pytest.raises(ExecutionFailure) as exc:
                await mysql_adapter.introspect_schema(config)

        assert "Failed to get MySQL schema" in str(exc.value)
        assert engine.disposed == 1

    def test_missing_required_field_raises_configuration_error(self, mysql_adapter):
        with pytest.raises(ConfigurationError) as exc:
            mysql_adapter.parse_config({"host": "db.internal"})
        assert "database" in str(exc.value)

    def test_managed_host_enables_tls(self):
        adapter = RelationalAdapter(POSTGRESQL_DIALECT)
        config = adapter.parse_config({"host": "db.abcd.supabase.co", "database": "postgres"})

        with patch("app.services.adapters.relational.create_engine") as create:
            adapter._create_engine(config)

        url = create.call_args.args[0]
        connect_args = create.call_args.kwargs["connect_args"]
        assert url.port == 5432
        assert connect_args["sslmode"] == "require"
        assert connect_args["options"] == "-c statement_timeout=30000"

    def test_explicit_ssl_false_overrides_host_pattern(self):
        adapter = RelationalAdapter(MYSQL_DIALECT)
        config = adapter.parse_config(
            {"host": "x.rds.amazonaws.com", "database": "shop", "ssl": False}
        )

        with patch("app.services.adapters.relational.create_engine") as create:
            adapter._create_engine(config)

        assert "ssl" not in create.call_args.kwargs["connect_args"]

    def test_is_managed_host(self):
        assert is_managed_host("ep-cool-1.us-east-2.aws.neon.tech") is True
        assert is_managed_host("localhost") is False
        assert is_managed_host("") is False

    def test_identifier_quoting(self):
        assert MYSQL_DIALECT.ident("we`ird") == "`we``ird`"
        assert POSTGRESQL_DIALECT.ident("users") == '"users"'


# ============================================================
# Virtualized table store
# ============================================================

@pytest.fixture
def table_store():
    return TableStoreAdapter()


class TestTableStoreAdapter:

    @pytest.mark.asyncio
    async def test_connection_treats_4xx_as_reachable(self, table_store, table_store_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(404)

        config = table_store.parse_config(table_store_config)
        with mock_http(handler):
            result = await table_store.test_connection(config)

        assert result.success is True
        assert str(seen[0].url) == "https://project.supabase.co/rest/v1/"
        assert seen[0].headers["apikey"] == "anon-key"
        assert seen[0].headers["authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_connection_5xx_fails(self, table_store, table_store_config):
        config = table_store.parse_config(table_store_config)
        with mock_http(lambda request: httpx.Response(503)):
            result = await table_store.test_connection(config)
        assert result.success is False
        assert "503" in result.message

    @pytest.mark.asyncio
    async def test_connection_network_error_fails(self, table_store, table_store_config):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        config = table_store.parse_config(table_store_config)
        with mock_http(handler):
            result = await table_store.test_connection(config)
        assert result.success is False
        assert "connection refused" in result.message

    @pytest.mark.asyncio
    async def test_schema_from_openapi_paths(self, table_store, table_store_config):
        document = {"paths": {"/": {}, "/users": {}, "/orders": {}, "/rpc/refresh": {}, "/users/{id}": {}}}
        config = table_store.parse_config(table_store_config)

        with mock_http(lambda request: httpx.Response(200, json=document)):
            schema = await table_store.introspect_schema(config)

        assert [t.name for t in schema.tables] == ["users", "orders"]
        assert [c.name for c in schema.tables[0].columns] == ["id", "created_at", "updated_at"]

    @pytest.mark.asyncio
    async def test_schema_falls_back_to_synthetic_table(self, table_store, table_store_config):
        config = table_store.parse_config(table_store_config)

        with mock_http(lambda request: httpx.Response(200, json={"swagger": "2.0"})):
            schema = await table_store.introspect_schema(config)

        assert schema.total_tables == 1
        assert schema.tables[0].name == "table_store_api"

    @pytest.mark.asyncio
    async def test_count_uses_head_and_content_range(self, table_store, table_store_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, headers={"Content-Range": "0-24/3573"})

        config = table_store.parse_config(table_store_config)
        with mock_http(handler):
            rows = await table_store.execute_query(config, "SELECT COUNT(*) FROM orders;")

        assert rows == [{"count": 3573}]
        assert seen[0].method == "HEAD"
        assert seen[0].url.path == "/rest/v1/orders"
        assert seen[0].headers["prefer"] == "count=exact"

    @pytest.mark.asyncio
    async def test_simple_select_with_limit(self, table_store, table_store_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": 1, "name": "a"}])

        config = table_store.parse_config(table_store_config)
        with mock_http(handler):
            rows = await table_store.execute_query(config, "select id, name from users limit 5")

        assert rows == [{"id": 1, "name": "a"}]
        assert seen[0].url.path == "/rest/v1/users"
        assert seen[0].url.params["select"] == "id,name"
        assert seen[0].url.params["limit"] == "5"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [
        "SELECT * FROM users WHERE id = 1",
        "SELECT u.id FROM users u JOIN orders o ON o.user_id = u.id",
        "SELECT status, COUNT(*) FROM orders GROUP BY status",
        "SELECT * FROM (SELECT id FROM users) sub",
    ])
    async def test_complex_queries_unsupported(self, table_store, table_store_config, query):
        config = table_store.parse_config(table_store_config)
        with mock_http(lambda request: pytest.fail("no request expected")):
            with pytest.raises(ExecutionFailure) as exc:
                await table_store.execute_query(config, query)
        assert "Complex queries unsupported" in str(exc.value)

    @pytest.mark.asyncio
    async def test_destructive_query_rejected_by_sanitizer(self, table_store, table_store_config):
        config = table_store.parse_config(table_store_config)
        with pytest.raises(UnsafeQuery):
            await table_store.execute_query(config, "DROP TABLE users")

    @pytest.mark.asyncio
    async def test_http_error_becomes_execution_failure(self, table_store, table_store_config):
        config = table_store.parse_config(table_store_config)
        with mock_http(lambda request: httpx.Response(401)):
            with pytest.raises(ExecutionFailure) as exc:
                await table_store.execute_query(config, "SELECT * FROM users")
        assert "401" in str(exc.value)


# ============================================================
# Generic REST
# ============================================================

@pytest.fixture
def rest_adapter():
    return RestApiAdapter()


class TestRestApiAdapter:

    def test_parse_api_call(self):
        assert parse_api_call("get /albums") == ("GET", "/albums")
        assert parse_api_call("albums") == ("GET", "/albums")
        assert parse_api_call("DELETE /posts/1") == ("DELETE", "/posts/1")

    def test_config_requires_url_or_host(self, rest_adapter):
        with pytest.raises(ConfigurationError):
            rest_adapter.parse_config({"api_key": "k"})

    def test_base_url_from_host_and_port(self, rest_adapter):
        config = rest_adapter.parse_config({"host": "http://10.0.0.5", "port": 8080})
        assert config.base_url == "http://10.0.0.5:8080"

    @pytest.mark.asyncio
    async def test_execute_builds_headers_and_wraps_object(self, rest_adapter, rest_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": 7})

        config = rest_adapter.parse_config(rest_config)
        with mock_http(handler):
            rows = await rest_adapter.execute_query(config, "GET /albums/7")

        assert rows == [{"id": 7}]
        request = seen[0]
        assert str(request.url) == "https://api.example.com/albums/7"
        assert request.headers["x-api-key"] == "rest-key"
        assert request.headers["authorization"] == "Bearer rest-key"
        assert request.headers["x-trace"] == "abc"

    @pytest.mark.asyncio
    async def test_execute_returns_list_as_is(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        with mock_http(lambda request: httpx.Response(200, json=[{"id": 1}, {"id": 2}])):
            rows = await rest_adapter.execute_query(config, "/albums")
        assert rows == [{"id": 1}, {"id": 2}]

    @pytest.mark.asyncio
    async def test_execute_wraps_scalar_body(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        with mock_http(lambda request: httpx.Response(201, text="created")):
            rows = await rest_adapter.execute_query(config, "POST /jobs")
        assert rows == [{"result": "created", "status": 201}]

    @pytest.mark.asyncio
    async def test_basic_auth_used_when_credentials_present(self, rest_adapter):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        config = rest_adapter.parse_config(
            {"api_url": "https://api.example.com", "username": "u", "password": "p"}
        )
        with mock_http(handler):
            await rest_adapter.execute_query(config, "GET /items")

        assert seen[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_execute_sanitizes_path(self, rest_adapter, rest_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        config = rest_adapter.parse_config(rest_config)
        with mock_http(handler):
            await rest_adapter.execute_query(config, "GET /../admin;rm")

        assert seen[0].url.path == "/adminrm"

    @pytest.mark.asyncio
    async def test_execute_http_error(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        with mock_http(lambda request: httpx.Response(404)):
            with pytest.raises(ExecutionFailure) as exc:
                await rest_adapter.execute_query(config, "GET /missing")
        assert "API query failed: 404" in str(exc.value)

    @pytest.mark.asyncio
    async def test_connection_status_below_500_is_success(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        with mock_http(lambda request: httpx.Response(401)):
            result = await rest_adapter.test_connection(config)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_schema_probe_uses_first_document_found(self, rest_adapter, rest_config):
        seen = []
        document = {"openapi": "3.0.0", "paths": {"/albums": {"get": {}, "parameters": []}}}

        def handler(request):
            seen.append(request.url.path)
            if request.url.path == "/swagger.json":
                return httpx.Response(200, json=document)
            return httpx.Response(404)

        config = rest_adapter.parse_config(rest_config)
        with mock_http(handler):
            schema = await rest_adapter.introspect_schema(config)

        assert seen == ["/schema", "/api/schema", "/swagger.json"]
        assert [t.name for t in schema.tables] == ["GET__albums"]
        assert schema.tables[0].columns[1].default == "/albums"

    @pytest.mark.asyncio
    async def test_schema_without_document_is_not_empty(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        with mock_http(lambda request: httpx.Response(404)):
            schema = await rest_adapter.introspect_schema(config)
        assert [t.name for t in schema.tables] == ["api_endpoint"]

    @pytest.mark.asyncio
    async def test_schema_unknown_document_format(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        with mock_http(lambda request: httpx.Response(200, json={"name": "my api"})):
            schema = await rest_adapter.introspect_schema(config)
        assert [t.name for t in schema.tables] == ["api_data"]

    def test_list_endpoints_prefers_declared(self, rest_adapter):
        config = rest_adapter.parse_config({
            "api_url": "https://jsonplaceholder.typicode.com",
            "endpoints": [{"method": "GET", "path": "/albums", "description": "albums"}],
        })
        assert [e.path for e in rest_adapter.list_endpoints(config)] == ["/albums"]

    def test_list_endpoints_known_catalogue(self, rest_adapter):
        config = rest_adapter.parse_config({"api_url": "https://jsonplaceholder.typicode.com"})
        endpoints = rest_adapter.list_endpoints(config)
        assert len(endpoints) == 12
        assert endpoints[0].path == "/posts"
        assert endpoints[1].path == "/posts/{id}"
        assert endpoints[1].description == "Get a specific post by ID"

    def test_list_endpoints_generic_fallback(self, rest_adapter, rest_config):
        config = rest_adapter.parse_config(rest_config)
        assert [e.path for e in rest_adapter.list_endpoints(config)] == [
            "/api/data", "/api/list", "/api/search",
        ]


# ============================================================
# Registry
# ============================================================

class TestAdapterRegistry:

    @pytest.mark.parametrize("backend_type,adapter_cls", [
        (BackendType.MYSQL, RelationalAdapter),
        (BackendType.POSTGRESQL, RelationalAdapter),
        (BackendType.TABLE_STORE, TableStoreAdapter),
        (BackendType.REST_API, RestApiAdapter),
    ])
    def test_get_adapter(self, backend_type, adapter_cls):
        adapter = get_adapter(backend_type)
        assert isinstance(adapter, adapter_cls)
        assert adapter.backend_type == backend_type

    def test_adapter_instances_are_shared(self):
        assert get_adapter("mysql") is get_adapter(BackendType.MYSQL)

    def test_unknown_backend(self):
        with pytest.raises(UnsupportedBackendOperation):
            get_adapter("mongodb")

    def test_is_api_backend(self):
        assert is_api_backend(BackendType.REST_API) is True
        assert is_api_backend("table_store") is False
