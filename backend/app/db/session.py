from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.base import Base

# DEBUG 모드일 때만 SQL 로깅 (연결 레지스트리/쿼리 이력 저장소)
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables() -> None:
    """연결/이력 테이블 생성 (개발 환경 자동 마이그레이션 대용)"""
    # create_all에 필요한 모델 등록
    import app.models.data_connection  # noqa: F401
    import app.models.query_history  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
