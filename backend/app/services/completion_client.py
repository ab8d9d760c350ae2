"""
CompletionClient - 호스팅 LLM (Gemini) 호출 클라이언트

- langchain-google-genai의 ChatGoogleGenerativeAI를 한 번 생성해 재사용
- 프롬프트 | llm | StrOutputParser 체인으로 호출
- 프로세스에서 한 번 생성되어 QueryTranslator에 주입됩니다.
"""
import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from langchain_google_genai import ChatGoogleGenerativeAI, HarmBlockThreshold, HarmCategory
from pydantic import BaseModel

from app.core.config import settings
from app.core.errors import TranslationFailure

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


class CompletionStatus(BaseModel):
    available: bool
    message: str


def _status_code(e: BaseException) -> Optional[int]:
    """SDK 예외 체인에서 HTTP 상태 코드 추출 (langchain이 감싼 경우 __cause__ 추적)"""
    current: Optional[BaseException] = e
    while current is not None:
        code = getattr(current, "code", None)
        if isinstance(code, int):
            return code
        current = current.__cause__
    return None


class CompletionClient:
    """Gemini 호출 (재시도 없음, 실패는 TranslationFailure)"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        llm: Optional[Runnable] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self._llm = llm

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def llm(self) -> Runnable:
        """ChatGoogleGenerativeAI 지연 생성 (API 키 확인 후)"""
        if self._llm is None:
            logger.info(f"[LLM] Google 모델 초기화: {self.model}")
            self._llm = ChatGoogleGenerativeAI(
                model=self.model,
                google_api_key=self.api_key,
                temperature=settings.LLM_TEMPERATURE,
                top_p=settings.LLM_TOP_P,
                top_k=settings.LLM_TOP_K,
                max_output_tokens=settings.LLM_MAX_TOKENS,
                safety_settings=SAFETY_SETTINGS,
                timeout=self.timeout,
                # 시도 횟수 1회 = 재시도 없음
                max_retries=1,
            )
        return self._llm

    async def complete(self, prompt: ChatPromptTemplate, variables: Dict[str, Any]) -> str:
        """프롬프트 템플릿 + 변수 → 생성 텍스트. 실패 시 TranslationFailure."""
        if not self.is_configured:
            raise TranslationFailure(
                "Gemini API key is not configured. Please check your environment variables."
            )

        chain = prompt | self.llm | StrOutputParser()

        try:
            text = await asyncio.wait_for(chain.ainvoke(variables), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"[LLM] request timed out after {self.timeout}s")
            raise TranslationFailure(f"Completion request timed out after {self.timeout}s") from e
        except Exception as e:
            logger.error(f"[LLM] request failed: {type(e).__name__}: {e}")
            raise TranslationFailure(f"Completion request failed: {e}") from e

        if not text or not text.strip():
            raise TranslationFailure("Invalid response from completion service - no content generated")
        return text

    async def check_status(self) -> CompletionStatus:
        """모델 응답 여부만 확인 (400도 '응답함'으로 간주)"""
        if not self.is_configured:
            return CompletionStatus(available=False, message="Gemini API key is not configured")

        try:
            await asyncio.wait_for(self.llm.ainvoke("Test"), timeout=self.timeout)
        except asyncio.TimeoutError:
            return CompletionStatus(
                available=False,
                message=f"Failed to check API status: timed out after {self.timeout}s",
            )
        except Exception as e:
            code = _status_code(e)
            if code == 503:
                return CompletionStatus(
                    available=False,
                    message="Gemini API is temporarily unavailable (503 Service Unavailable)",
                )
            if code == 429:
                return CompletionStatus(
                    available=False,
                    message="Gemini API rate limit exceeded (429 Too Many Requests)",
                )
            if code == 400:
                return CompletionStatus(available=True, message="Gemini API is available")
            return CompletionStatus(available=False, message=f"Failed to check API status: {e}")

        return CompletionStatus(available=True, message="Gemini API is available")


@lru_cache()
def get_completion_client() -> CompletionClient:
    return CompletionClient()
