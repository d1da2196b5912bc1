"""Insights generated from incorrect logs"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from promptloop.database import Base

class Insight(Base):
    """Problem/solution pair attached to a model; consumed by prompt optimization"""
    __tablename__ = "insights"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    problem = Column(Text, nullable=False)
    solution = Column(Text, nullable=False)
    data = Column(JSON, default=dict)  # {"description": ..., "log_id": ...}
    version = Column(String(50))
    created_at = Column(DateTime, default=datetime.now, index=True)
    deleted_at = Column(DateTime, nullable=True)
