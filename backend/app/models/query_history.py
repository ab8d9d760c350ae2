"""
쿼리 이력 모델 (실행 시도 1회당 1행, 추가만 가능)
"""
from sqlalchemy import (
    Column, Integer, String, Text, Float, JSON, DateTime
)
from sqlalchemy.sql import func
from app.db.base import Base


class QueryHistory(Base):
    __tablename__ = "query_history"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(100), nullable=False, index=True)
    connection_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=False)
    natural_query = Column(Text, nullable=False)
    generated_query = Column(Text, default="")
    results = Column(JSON, nullable=False, default=list)
    execution_time_ms = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False)  # SUCCESS | ERROR
    error_message = Column(Text, nullable=True)
    confidence = Column(Float, nullable=True)
    advisory = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
