"""
데이터 연결 CRUD (테넌트 범위)
"""
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.encryption import decrypt_config, encrypt_config
from app.models.data_connection import DataConnection
from app.schemas.data_connection import ConnectionStatus

REDACTED = "********"
SECRET_FIELDS = ("password", "api_key", "bearer_token")
_SECRET_HEADER_RE = re.compile(r"auth|token|key|secret|password|cookie", re.IGNORECASE)


def new_conn_id() -> str:
    return f"conn_{uuid.uuid4().hex[:12]}"


def redact_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """응답용 설정 사본. 비밀값과 인증 계열 헤더 값은 마스킹."""
    redacted = dict(config)
    for field in SECRET_FIELDS:
        if redacted.get(field):
            redacted[field] = REDACTED
    headers = redacted.get("headers")
    if isinstance(headers, list):
        redacted["headers"] = [
            {**h, "value": REDACTED}
            if isinstance(h, dict) and _SECRET_HEADER_RE.search(str(h.get("key", "")))
            else h
            for h in headers
        ]
    return redacted


async def list_connections(db: AsyncSession, tenant_id: str):
    result = await db.execute(
        select(DataConnection)
        .where(DataConnection.tenant_id == tenant_id)
        .order_by(DataConnection.created_at.desc(), DataConnection.id.desc())
    )
    return result.scalars().all()


async def get_connection(db: AsyncSession, tenant_id: str, conn_id: str) -> Optional[DataConnection]:
    result = await db.execute(
        select(DataConnection)
        .where(DataConnection.tenant_id == tenant_id, DataConnection.conn_id == conn_id)
    )
    return result.scalar_one_or_none()


async def _clear_default(db: AsyncSession, tenant_id: str, keep_conn_id: Optional[str] = None) -> None:
    stmt = (
        update(DataConnection)
        .where(DataConnection.tenant_id == tenant_id, DataConnection.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )
    if keep_conn_id:
        stmt = stmt.where(DataConnection.conn_id != keep_conn_id)
    await db.execute(stmt)


async def create_connection(db: AsyncSession, tenant_id: str, data: dict) -> DataConnection:
    backend_type = data["backend_type"]
    conn = DataConnection(
        conn_id=new_conn_id(),
        tenant_id=tenant_id,
        name=data["name"],
        backend_type=getattr(backend_type, "value", backend_type),
        encrypted_config=encrypt_config(data.get("config") or {}),
        status=ConnectionStatus.INACTIVE.value,
        is_default=bool(data.get("is_default", False)),
    )
    if conn.is_default:
        await _clear_default(db, tenant_id)

    db.add(conn)
    await db.commit()
    await db.refresh(conn)
    return conn


async def update_connection(db: AsyncSession, conn: DataConnection, updates: dict) -> DataConnection:
    if updates.get("name") is not None:
        conn.name = updates["name"]
    if updates.get("config") is not None:
        conn.encrypted_config = encrypt_config(updates["config"])
    if updates.get("is_default") is not None:
        if updates["is_default"]:
            await _clear_default(db, conn.tenant_id, keep_conn_id=conn.conn_id)
        conn.is_default = updates["is_default"]

    await db.commit()
    await db.refresh(conn)
    return conn


async def delete_connection(db: AsyncSession, tenant_id: str, conn_id: str) -> bool:
    result = await db.execute(
        delete(DataConnection)
        .where(DataConnection.tenant_id == tenant_id, DataConnection.conn_id == conn_id)
    )
    await db.commit()
    return result.rowcount > 0


def get_decrypted_config(conn: DataConnection) -> Dict[str, Any]:
    """저장된 설정 복호화. 실패 시 ConfigurationError."""
    return decrypt_config(conn.encrypted_config)


async def mark_tested(db: AsyncSession, conn: DataConnection, success: bool) -> DataConnection:
    """연결 테스트 결과 반영 (동시 테스트는 마지막 쓰기가 이김)"""
    conn.status = (ConnectionStatus.ACTIVE if success else ConnectionStatus.ERROR).value
    conn.last_tested_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(conn)
    return conn


def to_public_dict(conn: DataConnection) -> Dict[str, Any]:
    return {
        "id": conn.conn_id,
        "name": conn.name,
        "backend_type": conn.backend_type,
        "status": conn.status,
        "config": redact_config(get_decrypted_config(conn)),
        "is_default": bool(conn.is_default),
        "created_at": conn.created_at,
        "updated_at": conn.updated_at,
        "last_tested_at": conn.last_tested_at,
    }
