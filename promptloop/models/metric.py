"""Model metric definitions and their time series"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, Text, JSON, ForeignKey
from promptloop.database import Base

class ModelMetric(Base):
    """A metric tracked for a model (accuracy, health_check, oss scores, ...)"""
    __tablename__ = "model_metrics"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False)  # health_check, oss, function
    parameters = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)

class ModelMetricLog(Base):
    """One computed value of a model metric"""
    __tablename__ = "model_metric_logs"

    id = Column(Integer, primary_key=True, index=True)
    model_metric_id = Column(Integer, ForeignKey("model_metrics.id"), nullable=False, index=True)
    value = Column(Float, nullable=False)
    label = Column(String(100))
    description = Column(Text)
    version = Column(String(50), index=True)  # "{model_id}-{version_number}"
    created_at = Column(DateTime, default=datetime.now, index=True)
