"""
BaseAdapter - 쿼리 백엔드 공통 인터페이스

모든 어댑터는 {test_connection, introspect_schema, execute_query, sanitize}를 구현하고,
연결 설정(dict)은 parse_config()로 백엔드별 모델로 검증한 뒤에만 사용합니다.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Type

from pydantic import BaseModel, ValidationError

from app.core.errors import ConfigurationError
from app.schemas.data_connection import BackendType
from app.schemas.query import ConnectionTestResult, SchemaInfo
from app.services.query_sanitizer import sanitizer_for

logger = logging.getLogger(__name__)


def elapsed_ms(started: float) -> int:
    """time.perf_counter() 기준 경과 시간 (ms)"""
    return int((time.perf_counter() - started) * 1000)


def describe_error(e: Exception) -> str:
    """로그/사용자 메시지용 예외 요약 (빈 메시지 예외는 타입명)"""
    return str(e) or type(e).__name__


class BaseAdapter(ABC):
    """모든 백엔드 어댑터가 따르는 표준 인터페이스"""

    backend_type: BackendType
    config_model: Type[BaseModel]
    display_name: str = "Backend"

    def parse_config(self, raw: Dict[str, Any]) -> Any:
        """연결 설정 검증. 필수 값이 없으면 ConfigurationError."""
        try:
            return self.config_model.model_validate(raw or {})
        except ValidationError as e:
            fields = ", ".join(
                ".".join(str(p) for p in err["loc"]) or err["msg"] for err in e.errors()
            )
            raise ConfigurationError(
                f"{self.display_name} 연결 설정이 올바르지 않습니다: {fields}"
            ) from e

    def sanitize(self, query: str) -> str:
        """백엔드 종류에 맞는 sanitizer 적용"""
        return sanitizer_for(self.backend_type)(query)

    @abstractmethod
    async def test_connection(self, config: Any) -> ConnectionTestResult:
        """최소 핸드셰이크 + 왕복 지연 측정 (예외를 던지지 않음)"""
        ...

    @abstractmethod
    async def introspect_schema(self, config: Any) -> SchemaInfo:
        """백엔드 구조 스냅샷"""
        ...

    @abstractmethod
    async def execute_query(self, config: Any, query: str) -> List[dict]:
        """sanitize 후 실행, 결과 행 목록 반환"""
        ...
