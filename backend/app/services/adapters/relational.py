"""
RelationalAdapter - MySQL / PostgreSQL 드라이버 어댑터

- 호출마다 엔진/커넥션을 새로 열고 finally에서 닫음 (풀링/재사용 없음)
- 블로킹 드라이버 작업은 executor에서 실행, asyncio.wait_for로 타임아웃
- 관리형 클라우드 DB 호스트는 TLS 자동 활성화
"""
import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from fastapi.encoders import jsonable_encoder
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, URL
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.core.errors import ExecutionFailure
from app.schemas.backend_config import RelationalConfig
from app.schemas.data_connection import BackendType
from app.schemas.query import ColumnInfo, ConnectionTestResult, SchemaInfo, TableInfo
from app.services.adapters.base import BaseAdapter, describe_error, elapsed_ms

logger = logging.getLogger(__name__)


def _b64(value) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


# BLOB / VARBINARY / bytea 값은 base64 문자열로
BINARY_ENCODERS: Dict[Any, Callable[[Any], Any]] = {
    bytes: _b64,
    bytearray: _b64,
    memoryview: _b64,
}


@dataclass(frozen=True)
class SqlDialect:
    """드라이버/카탈로그 차이를 담는 최소 dialect 정의"""

    name: str
    backend_type: BackendType
    drivername: str
    default_port: int
    ident_quote: str

    def ident(self, name: str) -> str:
        q = self.ident_quote
        return q + name.replace(q, q + q) + q

    def connect_args(self, use_tls: bool, connect_timeout: int, query_timeout: int) -> Dict[str, Any]:
        if self.backend_type == BackendType.MYSQL:
            args: Dict[str, Any] = {
                "connect_timeout": connect_timeout,
                "read_timeout": query_timeout,
                "write_timeout": query_timeout,
            }
            if use_tls:
                args["ssl"] = {"check_hostname": False}
            return args

        args = {
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={query_timeout * 1000}",
        }
        if use_tls:
            args["sslmode"] = "require"
        return args


MYSQL_DIALECT = SqlDialect(
    name="MySQL",
    backend_type=BackendType.MYSQL,
    drivername="mysql+pymysql",
    default_port=3306,
    ident_quote="`",
)

POSTGRESQL_DIALECT = SqlDialect(
    name="PostgreSQL",
    backend_type=BackendType.POSTGRESQL,
    drivername="postgresql+psycopg2",
    default_port=5432,
    ident_quote='"',
)

_PG_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = 'public'
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

_PG_COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = 'public'
      AND table_name = :table_name
    ORDER BY ordinal_position
"""


def _as_text(value: Any) -> str:
    # 일부 MySQL 서버는 카탈로그 값을 bytes로 반환
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def is_managed_host(host: str) -> bool:
    """관리형 클라우드 DB 호스트 여부 (TLS 자동 적용 대상)"""
    host_lower = (host or "").lower()
    return any(pattern in host_lower for pattern in settings.managed_db_host_patterns_list)


class RelationalAdapter(BaseAdapter):
    """SQL 드라이버 어댑터 (dialect로 MySQL/PostgreSQL 구분)"""

    config_model = RelationalConfig

    def __init__(self, dialect: SqlDialect):
        self.dialect = dialect
        self.backend_type = dialect.backend_type
        self.display_name = dialect.name

    # ------------------------------------------------------------
    # 엔진/커넥션 관리
    # ------------------------------------------------------------

    def _query_timeout(self, config: RelationalConfig) -> int:
        return config.timeout or settings.QUERY_TIMEOUT_SECONDS

    def _create_engine(self, config: RelationalConfig):
        url = URL.create(
            self.dialect.drivername,
            username=config.username or None,
            password=config.password or None,
            host=config.host,
            port=config.port or self.dialect.default_port,
            database=config.database,
        )
        use_tls = config.ssl if config.ssl is not None else is_managed_host(config.host)
        return create_engine(
            url,
            poolclass=NullPool,
            connect_args=self.dialect.connect_args(
                use_tls, settings.CONNECT_TIMEOUT_SECONDS, self._query_timeout(config)
            ),
        )

    def _run_sync(self, config: RelationalConfig, work: Callable[[Connection], Any]) -> Any:
        engine = self._create_engine(config)
        try:
            with engine.connect() as conn:
                return work(conn)
        finally:
            engine.dispose()

    async def _run(self, config: RelationalConfig, work: Callable[[Connection], Any]) -> Any:
        loop = asyncio.get_running_loop()
        timeout = settings.CONNECT_TIMEOUT_SECONDS + self._query_timeout(config)
        return await asyncio.wait_for(
            loop.run_in_executor(None, self._run_sync, config, work),
            timeout=timeout,
        )

    # ------------------------------------------------------------
    # 카탈로그 조회
    # ------------------------------------------------------------

    def _mysql_tables(self, conn: Connection) -> List[TableInfo]:
        tables = []
        for row in conn.execute(text("SHOW TABLES")):
            table_name = _as_text(row[0])
            columns = [
                ColumnInfo(
                    name=col["Field"],
                    type=_as_text(col["Type"]),
                    nullable=col["Null"] == "YES",
                    default=None if col["Default"] is None else _as_text(col["Default"]),
                )
                for col in conn.execute(text(f"DESCRIBE {self.dialect.ident(table_name)}")).mappings()
            ]
            tables.append(TableInfo(name=table_name, columns=columns))
        return tables

    def _postgres_tables(self, conn: Connection) -> List[TableInfo]:
        tables = []
        for row in conn.execute(text(_PG_TABLES_SQL)):
            table_name = row[0]
            columns = [
                ColumnInfo(
                    name=col["column_name"],
                    type=col["data_type"],
                    nullable=col["is_nullable"] == "YES",
                    default=col["column_default"],
                )
                for col in conn.execute(text(_PG_COLUMNS_SQL), {"table_name": table_name}).mappings()
            ]
            tables.append(TableInfo(name=table_name, columns=columns))
        return tables

    # ------------------------------------------------------------
    # 어댑터 인터페이스
    # ------------------------------------------------------------

    async def test_connection(self, config: RelationalConfig) -> ConnectionTestResult:
        started = time.perf_counter()
        try:
            await self._run(config, lambda conn: conn.execute(text("SELECT 1")).scalar())
        except asyncio.TimeoutError:
            return ConnectionTestResult(
                success=False,
                message=f"{self.display_name} connection failed: timed out",
            )
        except Exception as e:
            logger.warning(f"[{self.display_name}] connection test failed: {describe_error(e)}")
            return ConnectionTestResult(
                success=False,
                message=f"{self.display_name} connection failed: {describe_error(e)}",
            )
        return ConnectionTestResult(
            success=True,
            message=f"{self.display_name} connection successful",
            latency_ms=elapsed_ms(started),
        )

    async def introspect_schema(self, config: RelationalConfig) -> SchemaInfo:
        reader = self._mysql_tables if self.backend_type == BackendType.MYSQL else self._postgres_tables
        try:
            tables = await self._run(config, reader)
        except asyncio.TimeoutError as e:
            raise ExecutionFailure(f"Failed to get {self.display_name} schema: timed out") from e
        except Exception as e:
            raise ExecutionFailure(f"Failed to get {self.display_name} schema: {describe_error(e)}") from e

        logger.info(f"[{self.display_name}] schema loaded: {len(tables)} tables")
        return SchemaInfo.from_tables(tables)

    async def execute_query(self, config: RelationalConfig, query: str) -> List[dict]:
        sanitized = self.sanitize(query)

        def _execute(conn: Connection) -> List[dict]:
            # 드라이버에 원문 그대로 전달 (":name" 바인드 파라미터 해석 없음)
            result = conn.exec_driver_sql(sanitized)
            if not result.returns_rows:
                return []
            return [jsonable_encoder(dict(row), custom_encoder=BINARY_ENCODERS) for row in result.mappings()]

        try:
            rows = await self._run(config, _execute)
        except asyncio.TimeoutError as e:
            raise ExecutionFailure(
                f"{self.display_name} query execution failed: timed out after {self._query_timeout(config)}s"
            ) from e
        except Exception as e:
            raise ExecutionFailure(
                f"{self.display_name} query execution failed: {describe_error(e)}"
            ) from e

        logger.info(f"[{self.display_name}] query returned {len(rows)} rows")
        return rows
