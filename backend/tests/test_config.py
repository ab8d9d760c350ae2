"""
config.py 단위 테스트
- Settings 클래스 검증
- 환경변수 파싱
- 프로덕션 설정 검증
"""
import pytest
from pydantic import ValidationError


class TestSettings:
    """Settings 클래스 테스트"""

    def _create_settings(self, **overrides):
        """테스트용 Settings 인스턴스 생성"""
        from app.core.config import Settings

        defaults = {
            "SECRET_KEY": "a-very-secure-secret-key-for-testing-purposes-1234",
            "DATABASE_URL": "sqlite+aiosqlite:///./test.db",
            "GEMINI_API_KEY": "gemini-key",
        }
        defaults.update(overrides)
        return Settings(**defaults)

    def test_default_values(self):
        """기본값이 올바르게 설정되는지 확인"""
        s = self._create_settings(DEBUG=False, ENVIRONMENT="development")
        assert s.PROJECT_NAME == "NL Query Engine"
        assert s.API_V1_STR == "/api/v1"
        assert s.DEBUG is False
        assert s.LLM_MODEL == "gemini-2.0-flash"
        assert s.CONFIDENCE_REVIEW_THRESHOLD == 0.7

    def test_secret_key_minimum_length(self):
        """SECRET_KEY 최소 길이 검증"""
        with pytest.raises(ValidationError):
            self._create_settings(SECRET_KEY="short")

    def test_secret_key_rejects_default(self):
        """SECRET_KEY 기본값 거부"""
        with pytest.raises(ValidationError):
            self._create_settings(SECRET_KEY="CHANGE_THIS_TO_A_SUPER_SECRET_KEY")

    def test_cors_origins_list_parsing(self):
        """CORS origins 문자열이 리스트로 파싱되는지 확인"""
        s = self._create_settings(CORS_ORIGINS="http://a.com, http://b.com")
        assert s.cors_origins_list == ["http://a.com", "http://b.com"]

    def test_managed_host_patterns_parsing(self):
        """관리형 DB 호스트 패턴 파싱 (소문자, 공백 제거)"""
        s = self._create_settings(MANAGED_DB_HOST_PATTERNS="Supabase.co, ,neon.tech")
        assert s.managed_db_host_patterns_list == ["supabase.co", "neon.tech"]

    def test_llm_temperature_range(self):
        """LLM 온도 범위 검증"""
        s = self._create_settings(LLM_TEMPERATURE=0.5)
        assert s.LLM_TEMPERATURE == 0.5

        with pytest.raises(ValidationError):
            self._create_settings(LLM_TEMPERATURE=-0.1)

        with pytest.raises(ValidationError):
            self._create_settings(LLM_TEMPERATURE=2.1)

    def test_timeouts_must_be_positive(self):
        """실행 타임아웃 범위 검증"""
        with pytest.raises(ValidationError):
            self._create_settings(QUERY_TIMEOUT_SECONDS=0)

        with pytest.raises(ValidationError):
            self._create_settings(HTTP_TIMEOUT_SECONDS=0)

    def test_production_warnings_debug(self):
        """프로덕션 환경 경고: DEBUG"""
        s = self._create_settings(ENVIRONMENT="production", DEBUG=True)
        warnings = s.validate_production_settings()
        assert any("DEBUG" in w for w in warnings)

    def test_production_warnings_missing_gemini_key(self):
        """프로덕션 환경 경고: GEMINI_API_KEY 없음"""
        s = self._create_settings(ENVIRONMENT="production", GEMINI_API_KEY=None)
        warnings = s.validate_production_settings()
        assert any("GEMINI_API_KEY" in w for w in warnings)

    def test_development_no_warnings(self):
        """개발 환경에서는 경고 없음"""
        s = self._create_settings(ENVIRONMENT="development", DEBUG=True)
        assert s.validate_production_settings() == []

    def test_extra_fields_ignored(self):
        """설정에 없는 필드는 무시"""
        s = self._create_settings(UNKNOWN_FIELD="value")
        assert not hasattr(s, "UNKNOWN_FIELD")
