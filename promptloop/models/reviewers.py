"""Reviewer and insight-model associations"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey
from promptloop.database import Base

class ReviewersModel(Base):
    """Subject model evaluated by a reviewer model"""
    __tablename__ = "reviewers_models"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    activation_threshold = Column(Integer, default=1000, nullable=False)
    evaluation_percentage = Column(Integer, default=30, nullable=False)  # 0-100
    limit = Column(Integer, default=5, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

class InsightsModel(Base):
    """Model used to run deep reviews that produce insights for a subject model"""
    __tablename__ = "insights_models"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    insight_model_id = Column(Integer, ForeignKey("models.id"), nullable=False)
    percentage = Column(Integer, default=30, nullable=False)  # 0-100
    created_at = Column(DateTime, default=datetime.now)
