"""Entries Service - paginated, cached listing of model logs"""
from typing import Any, Dict

from sqlalchemy.orm import Session

from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog, LogStatus, Environment
from promptloop.services.exceptions import EntityNotFoundError

ENTRY_TYPES = ("all", "correct", "incorrect", "error")

def entries_cache_key(model_id: int, entry_type: str, page: int, page_size: int, environment: str) -> str:
    return f"entries:{model_id}:{entry_type}:{page}:{page_size}:{environment}"

def serialize_log(log: ModelLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "modelId": log.model_id,
        "input": log.input,
        "output": log.output,
        "predicted": log.predicted,
        "actual": log.actual,
        "isCorrect": log.is_correct,
        "status": log.status.value if log.status else None,
        "environment": log.environment.value if log.environment else None,
        "processed": log.processed,
        "metricProcessed": log.metric_processed,
        "autoEvaluationProcessed": log.auto_evaluation_processed,
        "originalLogId": log.original_log_id,
        "version": log.version,
        "agentLogId": log.agent_log_id,
        "createdAt": log.created_at.isoformat() if log.created_at else None,
    }

class EntriesService:
    """Service for reading model log pages through the entries cache"""

    def __init__(self, db: Session, cache=None):
        self.db = db
        self.cache = cache

    def list_entries(
        self,
        model_id: int,
        entry_type: str = "all",
        page: int = 1,
        page_size: int = 10,
        environment: str = "production",
    ) -> Dict[str, Any]:
        if entry_type not in ENTRY_TYPES:
            raise ValueError(f"entry type must be one of {', '.join(ENTRY_TYPES)}")
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")
        if not self.db.query(Model.id).filter(Model.id == model_id).first():
            raise EntityNotFoundError("Model", model_id)

        key = entries_cache_key(model_id, entry_type, page, page_size, environment)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        query = self.db.query(ModelLog).filter(
            ModelLog.model_id == model_id,
            ModelLog.environment == Environment(environment),
            ModelLog.deleted_at.is_(None)
        )
        if entry_type == "correct":
            query = query.filter(ModelLog.is_correct.is_(True))
        elif entry_type == "incorrect":
            query = query.filter(ModelLog.is_correct.is_(False))
        elif entry_type == "error":
            query = query.filter(ModelLog.status == LogStatus.ERROR)

        total = query.count()
        logs = query.order_by(ModelLog.created_at.desc(), ModelLog.id.desc()).offset(
            (page - 1) * page_size
        ).limit(page_size).all()

        result = {
            "entries": [serialize_log(log) for log in logs],
            "total": total,
            "page": page,
            "pageSize": page_size,
        }
        if self.cache is not None:
            self.cache.set(key, result)
        return result
