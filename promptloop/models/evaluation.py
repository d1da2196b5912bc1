"""Evaluator definitions and evaluation results"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, Text, JSON, Enum, ForeignKey
from promptloop.database import Base

class EvaluatorType(str, enum.Enum):
    PROMPT = "prompt"
    FUNCTION = "function"

class EvaluationPrompt(Base):
    """Reusable evaluator definition (company-scoped or global)"""
    __tablename__ = "evaluation_prompts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)  # NULL = global
    type = Column(Enum(EvaluatorType, values_callable=lambda e: [m.value for m in e]), default=EvaluatorType.PROMPT, nullable=False)
    prompt = Column(Text)  # system prompt of LLM evaluators
    function_name = Column(String(100))  # built-in function evaluator name
    parameters = Column(JSON, default=dict)  # context passed to function evaluators
    is_informative = Column(Boolean, default=False, nullable=False)
    default_provider_model = Column(String(200))
    created_at = Column(DateTime, default=datetime.now)

class ModelEvaluationPrompt(Base):
    """Attaches an evaluator to a model, with its own provider/token/model override"""
    __tablename__ = "model_evaluation_prompts"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    evaluation_prompt_id = Column(Integer, ForeignKey("evaluation_prompts.id"), nullable=False)
    provider = Column(String(50))
    token = Column(String(500))
    provider_model = Column(String(200))
    created_at = Column(DateTime, default=datetime.now)

class EvaluationLog(Base):
    """Result of running one evaluator against one model log"""
    __tablename__ = "evaluation_logs"

    id = Column(Integer, primary_key=True, index=True)
    model_log_id = Column(Integer, ForeignKey("model_logs.id"), nullable=False, index=True)
    evaluator_id = Column(Integer, ForeignKey("evaluation_prompts.id"), nullable=False, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    is_correct = Column(Boolean, nullable=True)  # NULL when the evaluator itself failed
    score = Column(Float)
    summary = Column(Text)
    errors = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.now)
