"""
백엔드 종류별 연결 설정 스키마

연결 설정은 백엔드 종류마다 형태가 다르므로 종류별 모델로 닫아두고,
어댑터 경계에서 검증합니다 (app.services.adapters.base.BaseAdapter.parse_config).
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class KeyValuePair(BaseModel):
    key: str
    value: str


class ApiEndpoint(BaseModel):
    method: str = "GET"
    path: str
    description: str = ""


class RelationalConfig(BaseModel):
    """MySQL / PostgreSQL 연결 설정"""
    model_config = ConfigDict(extra="ignore")

    host: str = Field(..., min_length=1)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    database: str = Field(..., min_length=1)
    username: str = ""
    password: str = ""
    ssl: Optional[bool] = None  # None이면 호스트 패턴으로 자동 결정
    timeout: Optional[int] = Field(default=None, ge=1, le=600)


class TableStoreConfig(BaseModel):
    """REST로 노출된 가상 테이블 저장소 설정 (예: https://<project>.supabase.co)"""
    model_config = ConfigDict(extra="ignore")

    url: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1)
    timeout: Optional[float] = Field(default=None, gt=0, le=600)

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


class RestApiConfig(BaseModel):
    """일반 REST API 설정"""
    model_config = ConfigDict(extra="ignore")

    api_url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    api_key: Optional[str] = None
    bearer_token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    headers: List[KeyValuePair] = Field(default_factory=list)
    endpoints: List[ApiEndpoint] = Field(default_factory=list)
    timeout: Optional[float] = Field(default=None, gt=0, le=600)

    @model_validator(mode="after")
    def require_base_url(self):
        if not (self.api_url or self.host):
            raise ValueError("api_url 또는 host 중 하나는 필요합니다.")
        return self

    @property
    def base_url(self) -> str:
        """api_url 우선, 없으면 host[:port]"""
        if self.api_url:
            return self.api_url.rstrip("/")
        url = self.host.rstrip("/")
        return f"{url}:{self.port}" if self.port else url
