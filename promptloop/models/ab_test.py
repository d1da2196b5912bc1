"""A/B test association between an original and an optimized model"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Boolean, ForeignKey, Index, text
from promptloop.database import Base

class ABTestModel(Base):
    """Original model vs. optimized challenger with a traffic-split weight"""
    __tablename__ = "ab_test_models"
    __table_args__ = (
        # At most one principal A/B test per original model
        Index(
            'uq_ab_test_models_principal', 'model_id', unique=True,
            sqlite_where=text("principal = 1 AND deleted_at IS NULL"),
            postgresql_where=text("principal = true AND deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    optimized_model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    principal = Column(Boolean, default=False, nullable=False)
    percentage = Column(Integer, default=100, nullable=False)  # 0-100
    created_at = Column(DateTime, default=datetime.now)
    deleted_at = Column(DateTime, nullable=True)
