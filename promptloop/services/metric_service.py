"""Metric Service - per-version metric aggregation and health-check bookkeeping"""
import logging
from typing import Callable, Dict, List, Optional

import numpy as np
from sqlalchemy.orm import Session

from promptloop.models.metric import ModelMetric, ModelMetricLog
from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog, Environment
from promptloop.services.correctness_evaluator import is_correct
from promptloop.utils.output_processing import detect_error_message, output_contains_error

logger = logging.getLogger(__name__)

HEALTH_CHECK = "health_check"

def _actual(log: ModelLog) -> dict:
    return log.actual if isinstance(log.actual, dict) else {}

def _score(value) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0

def average_relevance(logs: List[ModelLog]) -> float:
    return float(np.mean([_score(_actual(log).get("relevance")) / 10.0 for log in logs]))

def average_coherence(logs: List[ModelLog]) -> float:
    return float(np.mean([_score(_actual(log).get("coherence")) / 10.0 for log in logs]))

def language_accuracy(logs: List[ModelLog]) -> float:
    return float(np.mean([_score(_actual(log).get("correct")) for log in logs]))

def classification_accuracy(logs: List[ModelLog]) -> float:
    return float(np.mean([1.0 if is_correct(log) else 0.0 for log in logs]))

def classification_error_rate(logs: List[ModelLog]) -> float:
    return 1.0 - classification_accuracy(logs)

LANGUAGE_METRICS: Dict[str, Callable[[List[ModelLog]], float]] = {
    "accuracy": language_accuracy,
    "average_relevance": average_relevance,
    "average_coherence": average_coherence,
}

CLASSIFICATION_METRICS: Dict[str, Callable[[List[ModelLog]], float]] = {
    "accuracy": classification_accuracy,
    "error_rate": classification_error_rate,
}

CALCULATORS = {
    "text_generation": LANGUAGE_METRICS,
    "generation": LANGUAGE_METRICS,
    "mapping": LANGUAGE_METRICS,
    "data_extraction": LANGUAGE_METRICS,
    "classification": CLASSIFICATION_METRICS,
    "multi_class": CLASSIFICATION_METRICS,
    "binary_class": CLASSIFICATION_METRICS,
}

def oss_average(metric_name: str, logs: List[ModelLog]) -> float:
    """Average of a 0-10 evaluator score stored under actual[metric_name], scaled to 0-1"""
    if not logs:
        return 0.0
    return float(np.sum([_score(_actual(log).get(metric_name)) for log in logs]) / (len(logs) * 10.0))

class MetricCalculator:
    """Service for computing metric logs of a model"""

    def __init__(self, db: Session):
        self.db = db

    def get_metrics(self, model_id: int) -> List[ModelMetric]:
        return self.db.query(ModelMetric).filter(ModelMetric.model_id == model_id).order_by(ModelMetric.id).all()

    def get_health_check_metric(self, model_id: int) -> Optional[ModelMetric]:
        return self.db.query(ModelMetric).filter(
            ModelMetric.model_id == model_id,
            ModelMetric.type == HEALTH_CHECK
        ).first()

    def last_metric_log(self, metric_id: int) -> Optional[ModelMetricLog]:
        return self.db.query(ModelMetricLog).filter(
            ModelMetricLog.model_metric_id == metric_id
        ).order_by(ModelMetricLog.created_at.desc(), ModelMetricLog.id.desc()).first()

    def unprocessed_logs(self, model_id: int, version: Optional[str]) -> List[ModelLog]:
        query = self.db.query(ModelLog).filter(
            ModelLog.model_id == model_id,
            ModelLog.metric_processed.is_(False),
            ModelLog.actual.isnot(None),
            ModelLog.environment == Environment.PRODUCTION,
            ModelLog.deleted_at.is_(None)
        )
        if version is not None:
            query = query.filter(ModelLog.version == version)
        return query.all()

    def compute_for_version(self, model: Model, version: Optional[str]) -> List[ModelMetricLog]:
        """
        Aggregate every unprocessed log of one version into metric logs.

        Logs are marked metric_processed afterwards, so a second call for the
        same logs writes nothing.
        """
        logs = self.unprocessed_logs(model.id, version)
        if not logs:
            return []

        calculators = CALCULATORS.get(model.problem_type, {})
        created = []
        for metric in self.get_metrics(model.id):
            if metric.type == HEALTH_CHECK:
                continue
            if metric.type == "oss":
                value = oss_average(metric.name, logs)
            else:
                function = calculators.get(metric.name)
                if function is None:
                    logger.debug(f"No calculator for metric {metric.name} of problem type {model.problem_type}")
                    continue
                value = round(function(logs), 2)

            metric_log = ModelMetricLog(
                model_metric_id=metric.id,
                value=value,
                label=metric.name,
                version=version,
            )
            self.db.add(metric_log)
            created.append(metric_log)

        for log in logs:
            log.metric_processed = True
        self.db.commit()
        logger.info(f"Computed {len(created)} metric logs for model {model.id} version {version} from {len(logs)} logs")
        return created

    def record_health_check(self, model: Model, log: ModelLog) -> Optional[ModelMetricLog]:
        """
        Write a health-check point for a new log.

        Errors always write value 0; a healthy output writes 1 only when there
        is no history yet or the last point was a failure. Models without a
        health_check metric are skipped.
        """
        metric = self.get_health_check_metric(model.id)
        if metric is None:
            return None

        if output_contains_error(log.output):
            metric_log = ModelMetricLog(
                model_metric_id=metric.id,
                value=0,
                label=HEALTH_CHECK,
                description=detect_error_message(log.output),
                version=log.version,
            )
        else:
            last = self.last_metric_log(metric.id)
            if last is not None and last.value != 0:
                return None
            metric_log = ModelMetricLog(
                model_metric_id=metric.id,
                value=1,
                label=HEALTH_CHECK,
                description="Model health check passed",
                version=log.version,
            )
        self.db.add(metric_log)
        self.db.commit()
        return metric_log
