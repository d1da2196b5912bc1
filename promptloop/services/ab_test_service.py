"""A/B Test Service - optimized challenger forking and principal A/B test bookkeeping"""
import logging
import time
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.models.ab_test import ABTestModel
from promptloop.models.metric import ModelMetric
from promptloop.models.model import Model
from promptloop.models.reviewers import ReviewersModel
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.prompt_version_service import PromptVersionService, model_lock

logger = logging.getLogger(__name__)

class ABTestService:
    """
    State machine of a model with respect to optimization.

    UNOPTIMIZED -> HAS_CANDIDATE forks a challenger and opens the principal
    A/B test; later candidates overwrite the challenger's prompt in place.
    Promotion goes through PromptVersionService.use_optimized_prompt.
    """

    def __init__(self, db: Session, version_service: Optional[PromptVersionService] = None):
        self.db = db
        self.version_service = version_service or PromptVersionService(db)

    def get_principal(self, model_id: int) -> Optional[ABTestModel]:
        return self.db.query(ABTestModel).filter(
            ABTestModel.model_id == model_id,
            ABTestModel.principal.is_(True),
            ABTestModel.deleted_at.is_(None)
        ).first()

    def get_ab_tests(self, model_id: int) -> List[ABTestModel]:
        return self.db.query(ABTestModel).filter(
            ABTestModel.model_id == model_id,
            ABTestModel.deleted_at.is_(None)
        ).order_by(ABTestModel.id).all()

    def get_principal_optimized_model(self, model_id: int) -> Optional[Model]:
        principal = self.get_principal(model_id)
        if not principal:
            return None
        return self.db.query(Model).filter(Model.id == principal.optimized_model_id).first()

    def get_original_model(self, optimized_model_id: int) -> Optional[Model]:
        """Non-optimized model an optimized challenger was forked from"""
        ab_test = self.db.query(ABTestModel).filter(
            ABTestModel.optimized_model_id == optimized_model_id,
            ABTestModel.deleted_at.is_(None)
        ).order_by(ABTestModel.id.desc()).first()
        if not ab_test:
            return None
        return self.db.query(Model).filter(Model.id == ab_test.model_id).first()

    def optimization_target(self, model: Model) -> Model:
        """Model insights/suggestions are generated for: the principal challenger if any"""
        return self.get_principal_optimized_model(model.id) or model

    def register_candidate(self, model: Model, prompt: str) -> Tuple[Model, bool]:
        """
        Route a new candidate prompt for an original model.

        Returns (optimized_model, forked). Forks a challenger when no principal
        A/B test exists yet, otherwise overwrites the existing challenger.
        """
        if model.is_optimized:
            raise ValueError(f"Model {model.id} is already an optimized model")
        if model.is_reviewer:
            raise ValueError(f"Model {model.id} is a reviewer and cannot be optimized")
        if not prompt or not prompt.strip():
            raise ValueError("prompt must not be empty")

        with model_lock(model.id):
            principal = self.get_principal(model.id)
            if principal:
                optimized = self.update_optimized_prompt(principal.optimized_model_id, prompt)
                return optimized, False
            return self.fork_optimized_model(model, prompt), True

    def update_optimized_prompt(self, optimized_model_id: int, prompt: str) -> Model:
        """Overwrite the challenger's prompt in place, keeping an inactive version as history"""
        optimized = self.db.query(Model).filter(Model.id == optimized_model_id).first()
        if not optimized:
            raise EntityNotFoundError("Model", optimized_model_id)

        optimized.parameters = {**(optimized.parameters or {}), "prompt": prompt}
        self.db.commit()
        self.version_service.create_version(optimized.id, prompt, activate=False)
        logger.info(f"Updated optimized prompt of challenger {optimized.id}")
        return optimized

    def fork_optimized_model(self, model: Model, prompt: str) -> Model:
        """Clone a model as its optimized challenger and open the principal A/B test"""
        params = model.parameters or {}
        optimized = Model(
            name=model.name,
            slug=f"{model.slug or model.id}-optimized-{int(time.time() * 1000)}",
            provider=model.provider,
            type=model.type,
            problem_type=model.problem_type,
            model_category=model.model_category,
            parameters={"prompt": prompt, "problemType": params.get("problemType")},
            system_prompt_structure=model.system_prompt_structure,
            flags=dict(model.flags or {}),
            model_group_id=model.model_group_id,
            active=True,
            is_reviewer=False,
            is_optimized=True,
        )
        self.db.add(optimized)
        self.db.flush()

        # Fresh metric definitions; the clone starts without metric history
        metrics = self.db.query(ModelMetric).filter(ModelMetric.model_id == model.id).all()
        for metric in metrics:
            self.db.add(ModelMetric(
                model_id=optimized.id,
                name=metric.name,
                type=metric.type,
                parameters=dict(metric.parameters or {}),
            ))

        reviewers = self.db.query(ReviewersModel).filter(ReviewersModel.model_id == model.id).all()
        for reviewer in reviewers:
            self.db.add(ReviewersModel(
                model_id=optimized.id,
                reviewer_id=reviewer.reviewer_id,
                activation_threshold=reviewer.activation_threshold,
                evaluation_percentage=reviewer.evaluation_percentage,
                limit=reviewer.limit,
            ))

        self.db.add(ABTestModel(
            model_id=model.id,
            optimized_model_id=optimized.id,
            principal=True,
            percentage=settings.AB_TEST_DEFAULT_PERCENTAGE,
        ))
        self.db.commit()
        self.db.refresh(optimized)

        self.version_service.create_version(optimized.id, prompt, activate=True)
        logger.info(f"Forked optimized challenger {optimized.id} from model {model.id}")
        return optimized
