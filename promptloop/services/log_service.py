"""Log write path: ingestion and updates of model logs"""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog, LogStatus, Environment
from promptloop.services.correctness_evaluator import is_correct
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.pipeline import LogCreated, LogUpdated

logger = logging.getLogger(__name__)

_UNSET = object()

def entries_cache_pattern(model_id: int) -> str:
    return f"entries:{model_id}:*"

class LogService:
    """
    Creates and updates ModelLog rows.

    Writes are committed before the matching domain event is published, so
    the pipeline always sees durable rows and a pipeline crash never loses
    a log.
    """

    def __init__(self, db: Session, publisher=None, cache=None):
        self.db = db
        self.publisher = publisher
        self.cache = cache

    def get_log(self, log_id: int) -> ModelLog:
        log = self.db.query(ModelLog).filter(
            ModelLog.id == log_id,
            ModelLog.deleted_at.is_(None)
        ).first()
        if not log:
            raise EntityNotFoundError("ModelLog", log_id)
        return log

    def create_log(
        self,
        model_id: int,
        input: Any,
        output: Any,
        predicted: Any = None,
        status: LogStatus = LogStatus.SUCCESS,
        environment: Environment = Environment.PRODUCTION,
        agent_log_id: Optional[int] = None,
        original_log_id: Optional[int] = None,
        parameters: Optional[dict] = None,
        version: Optional[str] = None,
    ) -> ModelLog:
        """Persist a new log, invalidate the entries cache and publish LogCreated"""
        if input is None:
            raise ValueError("input is required")
        if output is None:
            raise ValueError("output is required")

        model = self.db.query(Model).filter(Model.id == model_id).first()
        if not model:
            raise EntityNotFoundError("Model", model_id)

        log = ModelLog(
            model_id=model_id,
            input=input,
            output=output,
            predicted=predicted,
            status=LogStatus(status),
            environment=Environment(environment),
            agent_log_id=agent_log_id,
            original_log_id=original_log_id,
            parameters=parameters or {},
            version=version or "1",
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)

        # Readers must never see a stale entries page once the write returned
        if self.cache is not None:
            self.cache.delete_pattern(entries_cache_pattern(model_id))

        if self.publisher is not None:
            self.publisher.publish(LogCreated(log.id))
        return log

    def update_log(self, log_id: int, actual: Any = _UNSET, status: Optional[LogStatus] = None, predicted: Any = _UNSET) -> ModelLog:
        """
        Update ground truth / status of a log.

        LogUpdated is published only when `actual` goes from null to a value,
        or when `status` flips to error.
        """
        log = self.get_log(log_id)
        previous_actual = log.actual
        previous_status = log.status

        if predicted is not _UNSET:
            log.predicted = predicted
        if actual is not _UNSET:
            log.actual = actual
        if status is not None:
            log.status = LogStatus(status)

        if log.actual is not None:
            log.is_correct = is_correct(log)

        self.db.commit()
        self.db.refresh(log)

        if self.cache is not None:
            self.cache.delete_pattern(entries_cache_pattern(log.model_id))

        actual_became_known = previous_actual is None and log.actual is not None
        flipped_to_error = previous_status != LogStatus.ERROR and log.status == LogStatus.ERROR
        if (actual_became_known or flipped_to_error) and self.publisher is not None:
            self.publisher.publish(LogUpdated(log.id))
        return log

    def mark_error(self, log: ModelLog) -> None:
        """Set status to error without re-entering the update pipeline"""
        if log.status != LogStatus.ERROR:
            log.status = LogStatus.ERROR
            self.db.commit()
            if self.cache is not None:
                self.cache.delete_pattern(entries_cache_pattern(log.model_id))
