"""데이터 연결 관련 스키마"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BackendType(str, Enum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    TABLE_STORE = "table_store"  # REST로 노출된 가상 테이블 저장소 (PostgREST 계열)
    REST_API = "rest_api"


class ConnectionStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    ERROR = "error"


class DataConnectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="연결 이름")
    backend_type: BackendType = Field(..., description="백엔드 종류")
    config: Dict[str, Any] = Field(default_factory=dict, description="백엔드별 연결 설정 (암호화 저장)")
    is_default: bool = False


class DataConnectionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    config: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None


class ConnectionTestRequest(BaseModel):
    backend_type: BackendType
    config: Dict[str, Any] = Field(default_factory=dict)


class DataConnectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    backend_type: BackendType
    status: ConnectionStatus
    config: Dict[str, Any]  # 비밀값은 마스킹됨
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_tested_at: Optional[datetime] = None


class DataConnectionListResponse(BaseModel):
    connections: List[DataConnectionResponse]
