"""Optimization Service - one insight/suggestion/A-B cycle per model, and the weekly batch"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from promptloop.models.company import Company, ModelGroup, User
from promptloop.models.model import Model
from promptloop.services.ab_test_service import ABTestService
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.insight_service import InsightGenerator
from promptloop.services.llm_client import LLMClient
from promptloop.services.notifier import Notifier, OptimizationNotification
from promptloop.services.prompt_optimizer import PromptOptimizer
from promptloop.services.sampling import SamplingPolicy

logger = logging.getLogger(__name__)

def get_company_for_model(db: Session, model: Model) -> Optional[Company]:
    if model.model_group_id is None:
        return None
    group = db.query(ModelGroup).filter(ModelGroup.id == model.model_group_id).first()
    if not group:
        return None
    return db.query(Company).filter(Company.id == group.company_id).first()

def get_company_emails(db: Session, company: Optional[Company]) -> List[str]:
    if company is None:
        return []
    return [user.email for user in db.query(User).filter(User.company_id == company.id).order_by(User.id).all()]

class OptimizationService:
    """Service sequencing Insight Generator, Prompt Optimizer and A/B manager"""

    def __init__(
        self,
        db: Session,
        llm_client: Optional[LLMClient],
        sampling: Optional[SamplingPolicy] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.db = db
        self.sampling = sampling or SamplingPolicy()
        self.notifier = notifier
        self.insights = InsightGenerator(db, llm_client, self.sampling)
        self.optimizer = PromptOptimizer(db, llm_client, self.sampling)
        self.ab_tests = ABTestService(db)

    def _get_model(self, model_id: int) -> Model:
        model = self.db.query(Model).filter(Model.id == model_id).first()
        if not model:
            raise EntityNotFoundError("Model", model_id)
        return model

    def apply_suggestions(self, model_id: int) -> Optional[str]:
        """Candidate prompt for a model from its current insights, or None"""
        model = self._get_model(model_id)
        target = self.ab_tests.optimization_target(model)
        return self.optimizer.apply_suggestions(target, get_company_for_model(self.db, model))

    def optimize_model(self, model: Model, company: Optional[Company] = None) -> Dict:
        """
        Run one optimization cycle for an original model.

        Insights and suggestions target the principal challenger when one
        exists, so refinements compound on the current best candidate.
        """
        target = self.ab_tests.optimization_target(model)
        self.insights.generate_insights(target, company)
        suggestion = self.optimizer.suggest(target, company)
        if suggestion is None:
            return {"modelId": model.id, "status": "no_suggestions"}

        candidate = suggestion.prompt
        optimized, forked = self.ab_tests.register_candidate(model, candidate)
        self.optimizer.consume_insights(suggestion.insights)
        if forked:
            self.notify_optimization(model, optimized, candidate, company)
        return {
            "modelId": model.id,
            "status": "forked" if forked else "updated",
            "optimizedModelId": optimized.id,
        }

    def notify_optimization(self, model: Model, optimized: Model, prompt: str, company: Optional[Company]) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send_optimization_available(OptimizationNotification(
                model_id=model.id,
                model_name=model.name,
                optimized_model_id=optimized.id,
                new_prompt=prompt,
                recipients=get_company_emails(self.db, company),
            ))
        except Exception:
            logger.exception(f"Optimization notification failed for model {model.id}")

    def run_weekly_optimization(self) -> List[Dict]:
        """Optimize every active original model; one model failing never stops the batch"""
        models = self.db.query(Model).filter(
            Model.active.is_(True),
            Model.is_reviewer.is_(False),
            Model.is_optimized.is_(False)
        ).order_by(Model.id).all()

        results = []
        for model in models:
            try:
                results.append(self.optimize_model(model, get_company_for_model(self.db, model)))
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Weekly optimization failed for model {model.id}")
                results.append({"modelId": model.id, "status": "error", "error": str(e)})
        logger.info(f"Weekly optimization processed {len(results)} models")
        return results
