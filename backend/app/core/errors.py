"""
쿼리 엔진 예외 계층

- ConnectionNotFound / ConfigurationError: 이력 없이 호출자에게 바로 전파
- 나머지: 단계별 실패로 기록되어 ERROR 상태의 쿼리 이력이 남음
"""


class QueryEngineError(Exception):
    """쿼리 엔진 공통 예외"""


class ConnectionNotFound(QueryEngineError):
    pass


class UnsupportedBackendOperation(QueryEngineError):
    """백엔드 종류가 지원하지 않는 작업 (예: API 연결의 스키마 조회)"""


class TranslationFailure(QueryEngineError):
    """Completion 서비스 호출 실패 또는 응답 형식 오류"""


class UnsafeQuery(QueryEngineError):
    """Sanitizer가 거부한 쿼리"""


class ExecutionFailure(QueryEngineError):
    """드라이버/HTTP 실행 단계 실패"""


class ConfigurationError(QueryEngineError):
    """필수 비밀값/엔드포인트 누락 등 연결 설정 오류"""
