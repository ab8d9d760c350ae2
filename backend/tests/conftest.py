"""
테스트 공통 설정 및 Fixtures
"""
import os
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# 환경변수 먼저 설정 (settings import 전)
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "development")

from app.db.base import Base
import app.models.data_connection  # noqa: F401
import app.models.query_history  # noqa: F401
from app.services.completion_client import CompletionClient
from app.services.query_translator import QueryTranslator


TENANT_HEADERS = {"X-Tenant-Id": "tenant-a", "X-User-Id": "user-1"}


# ============================================================
# 데이터베이스 Fixtures
# ============================================================

@pytest.fixture
async def test_engine():
    """테스트별 인메모리 SQLite 비동기 엔진"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """각 테스트별 DB 세션"""
    async_session = sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session


# ============================================================
# 번역기 Fixtures (Completion 호출 모킹)
# ============================================================

@pytest.fixture
def mock_completion_client():
    """CompletionClient 모킹 (complete 반환값을 테스트에서 지정)"""
    client = CompletionClient(api_key="test-gemini-key")
    client.complete = AsyncMock(return_value="SELECT 1")
    return client


@pytest.fixture
def rendered_prompt(mock_completion_client):
    """마지막 complete 호출의 프롬프트 템플릿을 변수로 렌더링한 문자열"""
    def _render() -> str:
        template, variables = mock_completion_client.complete.call_args.args
        return template.format(**variables)

    return _render


@pytest.fixture
def translator(mock_completion_client):
    return QueryTranslator(mock_completion_client)


# ============================================================
# FastAPI 테스트 클라이언트
# ============================================================

@pytest.fixture
async def async_client(db_session, translator):
    """FastAPI 비동기 테스트 클라이언트 (테넌트 헤더 없음)"""
    from httpx import AsyncClient, ASGITransport
    from app.main import app
    from app.db.session import get_db
    from app.services.query_translator import get_query_translator

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_query_translator] = lambda: translator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def tenant_client(async_client):
    """X-Tenant-Id / X-User-Id 헤더가 붙은 클라이언트"""
    async_client.headers.update(TENANT_HEADERS)
    yield async_client


# ============================================================
# 연결 설정 샘플
# ============================================================

@pytest.fixture
def mysql_config():
    return {
        "host": "db.internal",
        "port": 3306,
        "database": "shop",
        "username": "reader",
        "password": "s3cret",
    }


@pytest.fixture
def rest_config():
    return {
        "api_url": "https://api.example.com",
        "api_key": "rest-key",
        "headers": [{"key": "X-Trace", "value": "abc"}],
    }


@pytest.fixture
def table_store_config():
    return {"url": "https://project.supabase.co/", "api_key": "anon-key"}
