"""
Query Translator 서비스
- 자연어 → SQL (MySQL / PostgreSQL / 가상 테이블 저장소)
- 자연어 → REST 호출문 ("GET /albums")
- 휴리스틱 confidence 계산, 0.7 미만이면 검토 권고(advisory) 첨부
- Completion 실패는 예외 대신 translation-error 결과로 반환 (재시도 없음)
"""
import json
import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional

from langchain_core.prompts import ChatPromptTemplate

from app.core.config import settings
from app.core.errors import TranslationFailure
from app.schemas.backend_config import ApiEndpoint
from app.schemas.query import QueryKind, SchemaInfo, TranslationResult
from app.services.completion_client import CompletionClient, get_completion_client
from app.services.query_sanitizer import PROHIBITED_KEYWORDS

logger = logging.getLogger(__name__)

# ============================================================
# Confidence 상수 (근사치, 보정된 확률 아님)
# ============================================================

BASE_CONFIDENCE = 0.5
SQL_KEYWORD_WEIGHT = 0.3
SQL_EXPECTED_KEYWORDS = ("SELECT", "FROM", "WHERE", "JOIN", "GROUP BY", "ORDER BY", "HAVING")
# 실행 단계에서 거부될 키워드와 동일한 목록
DESTRUCTIVE_KEYWORDS = PROHIBITED_KEYWORDS
DESTRUCTIVE_PENALTY = 0.5
LOW_CONFIDENCE_FLOOR = 0.1
ERROR_MARKERS = ("error", "unsupported")

API_FIELDS_BONUS = 0.3
API_METHOD_BONUS = 0.2
VALID_HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")

REVIEW_THRESHOLD = settings.CONFIDENCE_REVIEW_THRESHOLD

UNSUPPORTED_SENTINEL = "SELECT 'Unsupported or unclear query' AS error"

SQL_PROMPT = ChatPromptTemplate.from_template("""You are a SQL translator for a {dialect} database.
Convert this natural language query to valid {dialect} SQL.

DATABASE: "{database}"
USER QUERY: "{question}"

AVAILABLE SCHEMA:
{schema}

IMPORTANT RULES:
1. Generate ONLY the SQL query without markdown formatting or explanations
2. Use proper {dialect} syntax
3. Include appropriate WHERE clauses for data filtering
4. Use JOINs when multiple tables are needed
5. Add LIMIT clauses for potentially large result sets
6. If the query is impossible or unclear, return: {sentinel};
7. Ensure the query is safe and doesn't include DROP, DELETE, UPDATE, or other destructive operations
8. Use proper date/time functions for temporal queries

Respond with ONLY the SQL query:""")

API_PROMPT = ChatPromptTemplate.from_template("""You are an API query translator for REST APIs.
Convert this natural language query to a REST API call configuration.

USER QUERY: "{question}"

AVAILABLE API ENDPOINTS:
{endpoints}

IMPORTANT RULES:
1. Generate ONLY a JSON object without markdown formatting or explanations
2. Choose the most appropriate endpoint from the available list
3. Use GET method for data retrieval queries
4. If no exact match, choose the closest endpoint
5. Always use the exact path from the available endpoints

Generate a JSON object with this exact structure:
{{
  "method": "GET",
  "path": "/exact/endpoint/path",
  "description": "What this API call does"
}}

If the query cannot be matched to any available endpoint, return:
{{
  "error": "No matching endpoint found",
  "reason": "Explanation of why no endpoint matches"
}}

Respond with ONLY the JSON object:""")

_SQL_FENCE_RE = re.compile(r"```sql\n?", re.IGNORECASE)
_JSON_FENCE_RE = re.compile(r"```json\n?", re.IGNORECASE)
_FENCE_RE = re.compile(r"```\n?")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


# ============================================================
# 후처리 / confidence (순수 함수)
# ============================================================

def format_schema(schema: Optional[SchemaInfo]) -> str:
    """'Table: x\\nColumns: a (int), b (text)' 블록"""
    if schema is None or not schema.tables:
        return "No schema information available"
    blocks = []
    for table in schema.tables:
        columns = ", ".join(f"{col.name} ({col.type})" for col in table.columns)
        blocks.append(f"Table: {table.name}\nColumns: {columns}")
    return "\n\n".join(blocks)


def format_endpoints(endpoints: List[ApiEndpoint]) -> str:
    if not endpoints:
        return "No endpoints available"
    return "\n".join(f"{ep.method} {ep.path} - {ep.description}" for ep in endpoints)


def clean_sql_response(text: str) -> str:
    cleaned = _FENCE_RE.sub("", _SQL_FENCE_RE.sub("", text)).strip()
    if cleaned.endswith(";"):
        cleaned = cleaned[:-1].rstrip()
    return cleaned


def extract_json_object(text: str) -> str:
    cleaned = _FENCE_RE.sub("", _JSON_FENCE_RE.sub("", text)).strip()
    m = _JSON_OBJECT_RE.search(cleaned)
    return m.group(0) if m else cleaned


def sql_confidence(query: str) -> float:
    upper = query.upper()
    found = sum(1 for kw in SQL_EXPECTED_KEYWORDS if kw in upper)
    confidence = BASE_CONFIDENCE + (found / len(SQL_EXPECTED_KEYWORDS)) * SQL_KEYWORD_WEIGHT

    if any(kw in upper for kw in DESTRUCTIVE_KEYWORDS):
        # 파괴적 쿼리는 0.1을 넘지 않음
        confidence = min(LOW_CONFIDENCE_FLOOR, max(LOW_CONFIDENCE_FLOOR, confidence - DESTRUCTIVE_PENALTY))

    lower = query.lower()
    if any(marker in lower for marker in ERROR_MARKERS):
        confidence = LOW_CONFIDENCE_FLOOR

    return min(1.0, max(0.0, confidence))


def api_confidence(call: Dict[str, Any]) -> float:
    confidence = BASE_CONFIDENCE
    method = call.get("method")
    if method and call.get("path"):
        confidence += API_FIELDS_BONUS
    if isinstance(method, str) and method.upper() in VALID_HTTP_METHODS:
        confidence += API_METHOD_BONUS
    return min(1.0, max(0.0, confidence))


def review_advisory(confidence: float, subject: str) -> Optional[str]:
    if confidence < REVIEW_THRESHOLD:
        return f"Low confidence in generated {subject}. Please review before executing."
    return None


def translation_error(message: str) -> TranslationResult:
    return TranslationResult(
        query="",
        kind=QueryKind.TRANSLATION_ERROR,
        confidence=0.0,
        explanation=message,
    )


class QueryTranslator:
    """자연어 → 실행 가능한 쿼리 변환기 (CompletionClient 주입)"""

    def __init__(self, client: CompletionClient):
        self.client = client

    async def translate_to_query(
        self,
        natural_query: str,
        dialect: str,
        database: Optional[str],
        schema: Optional[SchemaInfo],
    ) -> TranslationResult:
        variables = {
            "dialect": dialect,
            "database": database or "Unknown",
            "question": natural_query,
            "schema": format_schema(schema),
            "sentinel": UNSUPPORTED_SENTINEL,
        }

        try:
            raw = await self.client.complete(SQL_PROMPT, variables)
        except TranslationFailure as e:
            logger.error(f"[Translator] SQL translation failed: {e}")
            return translation_error(str(e))

        sql = clean_sql_response(raw)
        confidence = sql_confidence(sql)
        logger.info(f"[Translator] SQL generated (confidence={confidence:.2f}): {sql[:100]}")
        return TranslationResult(
            query=sql,
            kind=QueryKind.RELATIONAL_QUERY,
            confidence=confidence,
            explanation=review_advisory(confidence, "SQL"),
        )

    async def translate_to_api_call(
        self,
        natural_query: str,
        endpoints: List[ApiEndpoint],
    ) -> TranslationResult:
        variables = {"question": natural_query, "endpoints": format_endpoints(endpoints)}

        try:
            raw = await self.client.complete(API_PROMPT, variables)
        except TranslationFailure as e:
            logger.error(f"[Translator] API translation failed: {e}")
            return translation_error(str(e))

        try:
            call = json.loads(extract_json_object(raw))
        except json.JSONDecodeError:
            logger.warning(f"[Translator] unparseable API response: {raw[:200]}")
            return translation_error("Failed to parse API response")

        if not isinstance(call, dict):
            return translation_error("Failed to parse API response")
        if call.get("error"):
            return translation_error(call.get("reason") or str(call["error"]))
        if not call.get("path"):
            return translation_error("API response did not include an endpoint path")

        confidence = api_confidence(call)
        method = str(call.get("method") or "GET").upper()
        query = f"{method} {call['path']}"
        logger.info(f"[Translator] API call generated (confidence={confidence:.2f}): {query}")
        return TranslationResult(
            query=query,
            kind=QueryKind.API_CALL,
            confidence=confidence,
            explanation=review_advisory(confidence, "API call") or call.get("description") or None,
        )


@lru_cache()
def get_query_translator() -> QueryTranslator:
    return QueryTranslator(get_completion_client())
