"""
NL Query Engine - FastAPI 애플리케이션
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import settings
from app.api.api import api_router
from app.db.session import engine, create_tables
from app.services.completion_client import get_completion_client

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 라이프사이클 관리"""
    logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})")

    # DB 테이블 자동 생성 (개발 환경)
    if settings.ENVIRONMENT == "development":
        await create_tables()
        logger.info("Database tables created (development mode)")

    if not get_completion_client().is_configured:
        logger.warning("GEMINI_API_KEY is not set - every translation will fail")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Natural-language query translation and multi-backend execution API",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

# CORS 설정 - 환경변수에서 읽어옴
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def read_root():
    """루트 엔드포인트"""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


async def _database_ok() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"[Health] database ping failed: {e}")
        return False


@app.get("/health")
async def health_check():
    """헬스 체크 엔드포인트"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "services": {
            "database": await _database_ok(),
            "llm": get_completion_client().is_configured,
        }
    }


@app.get("/health/{service}")
async def health_check_service(service: str):
    """개별 서비스 연결 테스트"""
    if service == "database":
        if await _database_ok():
            return {"status": "connected", "service": "database", "detail": "데이터베이스 연결 성공"}
        return {"status": "disconnected", "service": "database", "detail": "데이터베이스 연결 실패"}

    elif service == "llm":
        result = await get_completion_client().check_status()
        return {
            "status": "connected" if result.available else "disconnected",
            "service": "llm",
            "detail": result.message,
        }

    return {"status": "error", "service": service, "detail": f"알 수 없는 서비스: {service}"}
