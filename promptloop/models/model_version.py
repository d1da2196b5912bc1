"""Prompt versions of a model"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, ForeignKey, Index, text
from promptloop.database import Base

class ModelVersion(Base):
    """One historical prompt text for a model"""
    __tablename__ = "model_versions"
    __table_args__ = (
        # At most one active version per model
        Index(
            'uq_model_versions_active', 'model_id', unique=True,
            sqlite_where=text("active_version = 1"),
            postgresql_where=text("active_version = true"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    version = Column(String(20), nullable=False)  # monotonic integer string
    parameters = Column(JSON, nullable=False)  # {"prompt": ...}
    active_version = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    deleted_at = Column(DateTime, nullable=True)

    @property
    def prompt(self):
        return (self.parameters or {}).get("prompt")

    @property
    def version_key(self) -> str:
        return f"{self.model_id}-{self.version}"
