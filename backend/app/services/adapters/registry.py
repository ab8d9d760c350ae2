"""
어댑터 레지스트리 - 백엔드 종류 → 공유 어댑터 인스턴스

새 백엔드는 여기에 한 줄 등록하는 것으로 추가합니다.
"""
from typing import Dict, Union

from app.core.errors import UnsupportedBackendOperation
from app.schemas.data_connection import BackendType
from app.services.adapters.base import BaseAdapter
from app.services.adapters.relational import MYSQL_DIALECT, POSTGRESQL_DIALECT, RelationalAdapter
from app.services.adapters.rest_api import RestApiAdapter
from app.services.adapters.table_store import TableStoreAdapter

# 어댑터는 상태가 없으므로 프로세스 전체에서 공유
_ADAPTERS: Dict[BackendType, BaseAdapter] = {
    BackendType.MYSQL: RelationalAdapter(MYSQL_DIALECT),
    BackendType.POSTGRESQL: RelationalAdapter(POSTGRESQL_DIALECT),
    BackendType.TABLE_STORE: TableStoreAdapter(),
    BackendType.REST_API: RestApiAdapter(),
}


def _coerce(backend_type: Union[BackendType, str]) -> BackendType:
    try:
        return BackendType(backend_type)
    except ValueError as e:
        raise UnsupportedBackendOperation(f"Unsupported backend type: {backend_type}") from e


def get_adapter(backend_type: Union[BackendType, str]) -> BaseAdapter:
    """백엔드 종류에 해당하는 어댑터. 알 수 없는 종류면 UnsupportedBackendOperation."""
    adapter = _ADAPTERS.get(_coerce(backend_type))
    if adapter is None:
        raise UnsupportedBackendOperation(f"Unsupported backend type: {backend_type}")
    return adapter


def is_api_backend(backend_type: Union[BackendType, str]) -> bool:
    """HTTP 호출문으로 번역해야 하는 백엔드인지 (스키마 기반 SQL 번역 대상이 아님)"""
    return _coerce(backend_type) == BackendType.REST_API
