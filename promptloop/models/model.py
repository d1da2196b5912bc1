"""Monitored model (LLM/tool configuration)"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, ForeignKey
from promptloop.database import Base

class Model(Base):
    """A monitored LLM/tool configuration"""
    __tablename__ = "models"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(300), index=True)
    provider = Column(String(100))
    type = Column(String(100), default="largeLanguageModel")
    problem_type = Column(String(100), default="text_generation")
    model_category = Column(String(100))
    parameters = Column(JSON, default=dict)  # includes current "prompt"
    system_prompt_structure = Column(JSON(none_as_null=True), nullable=True)
    flags = Column(JSON, default=dict)
    model_group_id = Column(Integer, ForeignKey("model_groups.id"), nullable=True, index=True)

    active = Column(Boolean, default=True, index=True)
    is_reviewer = Column(Boolean, default=False, index=True)
    is_optimized = Column(Boolean, default=False, index=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def prompt(self):
        return (self.parameters or {}).get("prompt")
