"""
애플리케이션 설정
환경변수를 통해 설정을 관리합니다.
"""
import logging
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # ============================================================
    # 기본 설정
    # ============================================================
    PROJECT_NAME: str = "NL Query Engine"
    API_V1_STR: str = "/api/v1"

    # 환경 설정
    DEBUG: bool = False
    ENVIRONMENT: str = Field(
        default="development",
        description="development, staging, production"
    )

    # ============================================================
    # CORS 설정
    # ============================================================
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="쉼표로 구분된 허용 Origin 목록"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS Origin 리스트 반환"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # ============================================================
    # 암호화 설정 (연결 설정 암호화 키 파생용)
    # ============================================================
    SECRET_KEY: str = Field(
        ...,
        min_length=32,
        description="연결 설정 암호화용 비밀키 (최소 32자)"
    )

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "CHANGE_THIS_TO_A_SUPER_SECRET_KEY":
            raise ValueError("SECRET_KEY를 변경해주세요. 기본값은 보안에 취약합니다.")
        if len(v) < 32:
            raise ValueError("SECRET_KEY는 최소 32자 이상이어야 합니다.")
        return v

    # ============================================================
    # 데이터베이스 설정 (연결 레지스트리 + 쿼리 이력 저장소)
    # ============================================================
    DATABASE_URL: str = Field(
        ...,
        description="연결 정의/쿼리 이력 저장용 DB URL (async 드라이버)"
    )

    # ============================================================
    # LLM (Completion 서비스) 설정
    # ============================================================
    GEMINI_API_KEY: Optional[str] = Field(default=None, description="Gemini API Key")
    LLM_MODEL: str = Field(
        default="gemini-2.0-flash",
        description="쿼리 번역용 LLM 모델명"
    )
    LLM_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    LLM_MAX_TOKENS: int = Field(default=2048, ge=256, le=32768)
    LLM_TOP_P: float = Field(default=0.8, ge=0.0, le=1.0)
    LLM_TOP_K: int = Field(default=40, ge=1, le=100)
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0, le=600)

    # ============================================================
    # 쿼리 실행 설정
    # ============================================================
    CONNECT_TIMEOUT_SECONDS: int = Field(default=10, ge=1, le=120, description="드라이버 연결 타임아웃 (초)")
    QUERY_TIMEOUT_SECONDS: int = Field(default=30, ge=1, le=600, description="쿼리 실행 타임아웃 (초)")
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0, le=600, description="HTTP 백엔드 요청 타임아웃 (초)")
    CONFIDENCE_REVIEW_THRESHOLD: float = Field(
        default=0.7, ge=0.0, le=1.0,
        description="이 값 미만의 신뢰도에는 검토 권고 메시지를 붙임"
    )
    HISTORY_DEFAULT_LIMIT: int = Field(default=50, ge=1, le=500)
    MANAGED_DB_HOST_PATTERNS: str = Field(
        default="supabase.co,rds.amazonaws.com,database.azure.com,neon.tech,cloudsql,aivencloud.com",
        description="TLS를 자동으로 켜는 관리형 DB 호스트 패턴 (쉼표 구분)"
    )

    @property
    def managed_db_host_patterns_list(self) -> List[str]:
        """관리형 DB 호스트 패턴 리스트 반환"""
        return [p.strip().lower() for p in self.MANAGED_DB_HOST_PATTERNS.split(",") if p.strip()]

    # ============================================================
    # 로깅 설정
    # ============================================================
    LOG_LEVEL: str = Field(default="INFO", description="로그 레벨")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def validate_production_settings(self) -> List[str]:
        """
        프로덕션 환경 설정 검증
        Returns:
            경고 메시지 리스트
        """
        warnings = []

        if self.ENVIRONMENT == "production":
            if self.DEBUG:
                warnings.append("프로덕션 환경에서 DEBUG=True는 권장되지 않습니다.")

            if "localhost" in self.CORS_ORIGINS:
                warnings.append("프로덕션 환경에서 localhost CORS는 권장되지 않습니다.")

            if not self.GEMINI_API_KEY:
                warnings.append("GEMINI_API_KEY가 설정되지 않았습니다. 쿼리 번역이 모두 실패합니다.")

            if "localhost" in self.DATABASE_URL:
                warnings.append("프로덕션 환경에서 localhost DB는 권장되지 않습니다.")

        return warnings


# 설정 인스턴스 생성
settings = Settings()

# 프로덕션 환경 경고 출력
_warnings = settings.validate_production_settings()
for warning in _warnings:
    logger.warning(f"[CONFIG] {warning}")
