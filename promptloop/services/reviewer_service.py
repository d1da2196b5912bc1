"""Reviewer Service - lazy reviewer provisioning and informative evaluator attachment"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.models.evaluation import EvaluationPrompt, ModelEvaluationPrompt
from promptloop.models.model import Model
from promptloop.models.reviewers import ReviewersModel, InsightsModel
from promptloop.services.prompt_version_service import model_lock

logger = logging.getLogger(__name__)

class ReviewerService:
    """Service for reviewer and insight-model associations of a model"""

    def __init__(self, db: Session):
        self.db = db

    def get_reviewers(self, model_id: int) -> List[ReviewersModel]:
        return self.db.query(ReviewersModel).filter(
            ReviewersModel.model_id == model_id
        ).order_by(ReviewersModel.id).all()

    def get_insight_models(self, model_id: int) -> List[InsightsModel]:
        return self.db.query(InsightsModel).filter(
            InsightsModel.model_id == model_id
        ).order_by(InsightsModel.id).all()

    def ensure_reviewer(self, model: Model, is_n8n: bool = False) -> Optional[ReviewersModel]:
        """
        Create the model's first reviewer when it has none.

        Returns the new association, or None when a reviewer already existed.
        """
        if model.is_reviewer:
            return None

        with model_lock(model.id):
            if self.get_reviewers(model.id):
                return None

            reviewer = Model(
                name=f"{model.name} - Reviewer",
                slug=f"{model.slug or model.id}-reviewer",
                provider=model.provider,
                type="largeLanguageModel",
                problem_type=model.problem_type,
                model_category=model.model_category,
                parameters={"problemType": "oss"},
                model_group_id=model.model_group_id,
                active=True,
                is_reviewer=True,
            )
            self.db.add(reviewer)
            self.db.flush()

            percentage = settings.N8N_EVALUATION_PERCENTAGE if is_n8n else settings.DEFAULT_EVALUATION_PERCENTAGE
            association = ReviewersModel(
                model_id=model.id,
                reviewer_id=reviewer.id,
                activation_threshold=settings.REVIEWER_ACTIVATION_THRESHOLD,
                evaluation_percentage=percentage,
                limit=settings.REVIEWER_LIMIT,
            )
            self.db.add(association)
            self.db.commit()
            self.db.refresh(association)

        logger.info(f"Created reviewer {reviewer.id} for model {model.id} (evaluation_percentage={percentage})")
        return association

    def ensure_informative_evaluators(self, model: Model, company_id: Optional[int] = None) -> int:
        """Attach every global (or company) informative evaluator the model lacks; returns how many were added"""
        query = self.db.query(EvaluationPrompt).filter(EvaluationPrompt.is_informative.is_(True))
        if company_id is not None:
            query = query.filter((EvaluationPrompt.company_id.is_(None)) | (EvaluationPrompt.company_id == company_id))
        else:
            query = query.filter(EvaluationPrompt.company_id.is_(None))
        informative = query.all()
        if not informative:
            return 0

        attached = {
            row.evaluation_prompt_id
            for row in self.db.query(ModelEvaluationPrompt).filter(ModelEvaluationPrompt.model_id == model.id).all()
        }
        added = 0
        for evaluator in informative:
            if evaluator.id in attached:
                continue
            self.db.add(ModelEvaluationPrompt(model_id=model.id, evaluation_prompt_id=evaluator.id))
            added += 1
        if added:
            self.db.commit()
            logger.debug(f"Attached {added} informative evaluators to model {model.id}")
        return added
