"""Outbound notifications decided by the pipeline (delivery stays external)"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

@dataclass
class ModelFailureNotification:
    """Data for a 'model produced an incorrect/failed entry' notification"""
    model_id: int
    model_name: str
    log_id: int
    error_message: str
    recipients: List[str] = field(default_factory=list)
    agent_name: Optional[str] = None
    agent_log_id: Optional[int] = None

@dataclass
class OptimizationNotification:
    """Data for a 'new optimized prompt is available' notification"""
    model_id: int
    model_name: str
    optimized_model_id: int
    new_prompt: str
    recipients: List[str] = field(default_factory=list)

class Notifier:
    """Delivery interface; implementations decide how messages reach users"""

    def send_model_failure(self, notification: ModelFailureNotification) -> None:
        raise NotImplementedError

    def send_optimization_available(self, notification: OptimizationNotification) -> None:
        raise NotImplementedError

class LoggingNotifier(Notifier):
    """Default delivery: records notifications in the application log"""

    def send_model_failure(self, notification: ModelFailureNotification) -> None:
        logger.warning(
            f"Model failure: model={notification.model_name} ({notification.model_id}) "
            f"log={notification.log_id} recipients={len(notification.recipients)} "
            f"error={notification.error_message}"
        )

    def send_optimization_available(self, notification: OptimizationNotification) -> None:
        logger.info(
            f"Optimized prompt available: model={notification.model_name} ({notification.model_id}) "
            f"challenger={notification.optimized_model_id} recipients={len(notification.recipients)}"
        )
