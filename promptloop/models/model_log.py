"""Model invocation log"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Enum, ForeignKey, Index
from promptloop.database import Base

class LogStatus(str, enum.Enum):
    """Outcome of a model invocation"""
    SUCCESS = "success"
    ERROR = "error"
    CRASH = "crash"

class Environment(str, enum.Enum):
    PRODUCTION = "production"
    STAGING = "staging"

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

class ModelLog(Base):
    """One invocation of a model; input/output are immutable after ingestion"""
    __tablename__ = "model_logs"
    __table_args__ = (
        Index('ix_model_logs_model_created', 'model_id', 'created_at'),
    )

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    agent_log_id = Column(Integer, ForeignKey("agent_logs.id"), nullable=True, index=True)

    input = Column(JSON, nullable=False)
    output = Column(JSON, nullable=False)
    parameters = Column(JSON, default=dict)
    predicted = Column(JSON(none_as_null=True), nullable=True)
    actual = Column(JSON(none_as_null=True), nullable=True)  # populated once ground truth/evaluation completes
    is_correct = Column(Boolean, nullable=True)

    status = Column(Enum(LogStatus, values_callable=_enum_values), default=LogStatus.SUCCESS, nullable=False, index=True)
    environment = Column(Enum(Environment, values_callable=_enum_values), default=Environment.PRODUCTION, nullable=False)

    processed = Column(Boolean, default=False, nullable=False)
    metric_processed = Column(Boolean, default=False, nullable=False)
    auto_evaluation_processed = Column(Boolean, default=False, nullable=False)

    # Set when this log replays an original log against an optimized variant
    original_log_id = Column(Integer, ForeignKey("model_logs.id"), nullable=True, index=True)
    version = Column(String(50), default="1")  # "{model_id}-{version_number}"

    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime, nullable=True)
