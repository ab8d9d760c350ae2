"""
데이터 연결 모델 (자연어 쿼리 대상 백엔드 정의)
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime
)
from sqlalchemy.sql import func
from app.db.base import Base


class DataConnection(Base):
    __tablename__ = "data_connections"

    id = Column(Integer, primary_key=True, index=True)
    conn_id = Column(String(100), unique=True, nullable=False, index=True)
    tenant_id = Column(String(100), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    backend_type = Column(String(30), nullable=False)  # mysql | postgresql | table_store | rest_api
    encrypted_config = Column(Text, nullable=False)  # Fernet(JSON)
    status = Column(String(20), nullable=False, default="inactive")  # inactive | active | error
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_tested_at = Column(DateTime(timezone=True), nullable=True)
