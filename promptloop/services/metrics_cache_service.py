"""Metrics Cache Service - precomputed aggregates served to dashboards"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import numpy as np
from sqlalchemy.orm import Session

from promptloop.models.metric import ModelMetric, ModelMetricLog
from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog, LogStatus
from promptloop.services.ab_test_service import ABTestService

logger = logging.getLogger(__name__)

CACHE_WINDOW_DAYS = 30

def ab_correct_entries_key(model_id: int) -> str:
    return f"ab-correct-entries:{model_id}"

def ab_metrics_key(model_id: int) -> str:
    return f"ab-metrics:{model_id}"

def model_metrics_detail_key(model_id: int) -> str:
    return f"model-metrics-detail:{model_id}"

def monitoring_key(model_id: int) -> str:
    return f"model-metrics-monitoring:{model_id}"

class MetricsCacheService:
    """Service for refreshing the cached aggregate metrics of a model"""

    def __init__(self, db: Session, cache):
        self.db = db
        self.cache = cache
        self.ab_tests = ABTestService(db)

    def _recent_logs(self, model_id: int, days: int = CACHE_WINDOW_DAYS) -> List[ModelLog]:
        since = datetime.now() - timedelta(days=days)
        return self.db.query(ModelLog).filter(
            ModelLog.model_id == model_id,
            ModelLog.deleted_at.is_(None),
            ModelLog.created_at >= since
        ).all()

    def correct_entries_by_day(self, model_id: int) -> Dict[str, Dict[str, int]]:
        days: Dict[str, Dict[str, int]] = defaultdict(lambda: {"correct": 0, "total": 0})
        for log in self._recent_logs(model_id):
            day = log.created_at.date().isoformat()
            days[day]["total"] += 1
            if log.is_correct:
                days[day]["correct"] += 1
        return dict(sorted(days.items()))

    def save_ab_correct_entries_by_day(self, model: Model) -> dict:
        challenger = self.ab_tests.get_principal_optimized_model(model.id)
        value = {
            "base": self.correct_entries_by_day(model.id),
            "optimized": self.correct_entries_by_day(challenger.id) if challenger else {},
            "optimizedModelId": challenger.id if challenger else None,
        }
        self.cache.set(ab_correct_entries_key(model.id), value)
        return value

    def _latest_metric_values(self, model_id: int) -> Dict[str, Optional[float]]:
        values = {}
        for metric in self.db.query(ModelMetric).filter(ModelMetric.model_id == model_id).all():
            last = self.db.query(ModelMetricLog).filter(
                ModelMetricLog.model_metric_id == metric.id
            ).order_by(ModelMetricLog.created_at.desc(), ModelMetricLog.id.desc()).first()
            values[metric.name] = last.value if last else None
        return values

    def save_ab_metrics(self, model: Model) -> dict:
        challenger = self.ab_tests.get_principal_optimized_model(model.id)
        value = {
            "base": self._latest_metric_values(model.id),
            "optimized": self._latest_metric_values(challenger.id) if challenger else {},
        }
        self.cache.set(ab_metrics_key(model.id), value)
        return value

    def save_model_metrics(self, model: Model) -> dict:
        since = datetime.now() - timedelta(days=CACHE_WINDOW_DAYS)
        value = {}
        for metric in self.db.query(ModelMetric).filter(ModelMetric.model_id == model.id).all():
            points = self.db.query(ModelMetricLog).filter(
                ModelMetricLog.model_metric_id == metric.id,
                ModelMetricLog.created_at >= since
            ).order_by(ModelMetricLog.created_at, ModelMetricLog.id).all()
            series = [p.value for p in points]
            value[metric.name] = {
                "type": metric.type,
                "points": [
                    {"value": p.value, "version": p.version, "createdAt": p.created_at.isoformat()}
                    for p in points
                ],
                "average": float(np.mean(series)) if series else None,
            }
        self.cache.set(model_metrics_detail_key(model.id), value)
        return value

    def save_monitoring_snapshot(self, model: Model) -> dict:
        logs = self._recent_logs(model.id)
        errors = sum(1 for log in logs if log.status == LogStatus.ERROR)
        health = self.db.query(ModelMetricLog).join(
            ModelMetric, ModelMetric.id == ModelMetricLog.model_metric_id
        ).filter(
            ModelMetric.model_id == model.id,
            ModelMetric.type == "health_check"
        ).order_by(ModelMetricLog.created_at.desc(), ModelMetricLog.id.desc()).first()
        value = {
            "totalLogs": len(logs),
            "errorLogs": errors,
            "errorRate": errors / len(logs) if logs else 0.0,
            "lastHealthCheck": health.value if health else None,
        }
        self.cache.set(monitoring_key(model.id), value)
        return value

    def refresh_all(self, model: Model) -> None:
        """Recompute every cached aggregate; each failure is logged, not raised"""
        for refresh in (
            self.save_ab_correct_entries_by_day,
            self.save_ab_metrics,
            self.save_model_metrics,
            self.save_monitoring_snapshot,
        ):
            try:
                refresh(model)
            except Exception:
                logger.exception(f"Cache refresh {refresh.__name__} failed for model {model.id}")
