"""
쿼리 Sanitizer
- SQL: 파괴적 키워드 / 인젝션 패턴이 있으면 쿼리 전체 거부
- HTTP: 경로에서 스크립트/경로탐색/셸 메타문자 제거
- 두 sanitizer는 서로 대체할 수 없으며 백엔드 종류로 선택
"""
import re
from typing import Callable

from app.core.errors import UnsafeQuery
from app.schemas.data_connection import BackendType

# 부분 문자열 매칭: 주석/문자열 리터럴/컬럼명 안에 있어도 거부 (오탐 허용, 미탐 불가)
PROHIBITED_KEYWORDS = (
    "DROP", "DELETE", "UPDATE", "INSERT", "TRUNCATE", "ALTER",
    "CREATE", "GRANT", "REVOKE", "EXEC", "EXECUTE",
)

SUSPICIOUS_PATTERNS = (
    re.compile(r";\s*DROP", re.IGNORECASE),
    re.compile(r";\s*DELETE", re.IGNORECASE),
    re.compile(r";\s*UPDATE", re.IGNORECASE),
    re.compile(r";\s*INSERT", re.IGNORECASE),
    re.compile(r"UNION\s+(ALL\s+)?SELECT", re.IGNORECASE),
    re.compile(r"LOAD_FILE", re.IGNORECASE),
    re.compile(r"INTO\s+OUTFILE", re.IGNORECASE),
    re.compile(r"INTO\s+DUMPFILE", re.IGNORECASE),
)

_HTML_CHARS_RE = re.compile(r"[<>'\"]")
_TRAVERSAL_RE = re.compile(r"\.\./")
_SHELL_CHARS_RE = re.compile(r"[;&|`$]")


def find_prohibited_keyword(query: str) -> str | None:
    """쿼리에 포함된 첫 번째 금지 키워드를 반환합니다 (없으면 None)."""
    upper = query.upper()
    for keyword in PROHIBITED_KEYWORDS:
        if keyword in upper:
            return keyword
    return None


def sanitize_sql(query: str) -> str:
    """SQL 쿼리 검증. 안전하면 앞뒤 공백만 제거한 원문을 반환합니다."""
    keyword = find_prohibited_keyword(query)
    if keyword:
        raise UnsafeQuery(f"Query contains prohibited keyword: {keyword}")

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(query):
            raise UnsafeQuery(f"Query contains suspicious pattern: {pattern.pattern}")

    return query.strip()


def sanitize_http(query: str) -> str:
    """HTTP 호출문("GET /users") 정리. 거부하지 않고 위험 문자만 제거합니다."""
    cleaned = _HTML_CHARS_RE.sub("", query)
    cleaned = _TRAVERSAL_RE.sub("", cleaned)
    cleaned = _SHELL_CHARS_RE.sub("", cleaned)
    return cleaned.strip()


def sanitizer_for(backend_type: BackendType) -> Callable[[str], str]:
    """백엔드 종류에 맞는 sanitizer 선택"""
    if backend_type == BackendType.REST_API:
        return sanitize_http
    return sanitize_sql
