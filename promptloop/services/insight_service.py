"""Insight Generator - problem/solution insights from incorrect logs"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.models.company import Company
from promptloop.models.insight import Insight
from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog
from promptloop.services.correctness_evaluator import expected_output, is_correct, predicted_output
from promptloop.services.llm_client import LLMClient, LLMError, optimization_client
from promptloop.services.prompt_version_service import PromptVersionService
from promptloop.services.sampling import SamplingPolicy
from promptloop.utils.log_parsing import parse_context, parse_input_content, parse_output_content

logger = logging.getLogger(__name__)

REVIEW_SYSTEM_PROMPT = (
    "You are an expert reviewer of LLM system prompts. Given a model's system prompt, a user input, "
    "the generated output and why it was judged incorrect, identify the root causes in the system "
    "prompt and propose concrete, general improvements."
)

REVIEW_TASK = """### Task
Analyze why the generated output deviates from the expected result based on the Context (System Prompt).
Identify new or unaddressed reasons for the mismatch, such as:
1. Ambiguity: unclear or conflicting instructions.
2. Missing Guidance: absent details or policy directives.
3. Misalignment: the prompt does not steer the model toward the desired response.

Focus on general improvements that apply to a range of scenarios. Respond in English as a JSON
object `{"reviews": [{"problem": ..., "solution": ..., "description": ...}]}`."""

class Review(BaseModel):
    problem: str
    solution: str
    description: str = ""

class ReviewList(BaseModel):
    reviews: List[Review] = Field(default_factory=list)

def _normalize(text: str) -> str:
    return " ".join((text or "").lower().split())

class InsightGenerator:
    """Service for generating and counting insights of a model"""

    def __init__(self, db: Session, llm_client: Optional[LLMClient], sampling: SamplingPolicy):
        self.db = db
        self.llm_client = llm_client
        self.sampling = sampling
        self.max_insights = settings.MAX_INSIGHTS_PER_MODEL

    def count_insights(self, model_id: int) -> int:
        return self.db.query(Insight).filter(
            Insight.model_id == model_id,
            Insight.deleted_at.is_(None)
        ).count()

    def has_capacity(self, model_id: int) -> bool:
        """Hard gate: fewer than MAX_INSIGHTS_PER_MODEL live insights"""
        return self.count_insights(model_id) < self.max_insights

    def get_insights(self, model_id: int, limit: Optional[int] = None) -> List[Insight]:
        query = self.db.query(Insight).filter(
            Insight.model_id == model_id,
            Insight.deleted_at.is_(None)
        ).order_by(Insight.created_at.desc(), Insight.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def candidate_logs(self, model: Model) -> List[ModelLog]:
        """Recent incorrect logs with known ground truth"""
        since = datetime.now() - timedelta(hours=settings.INSIGHT_WINDOW_HOURS)
        logs = self.db.query(ModelLog).filter(
            ModelLog.model_id == model.id,
            ModelLog.actual.isnot(None),
            ModelLog.deleted_at.is_(None),
            ModelLog.created_at >= since
        ).order_by(ModelLog.created_at.desc(), ModelLog.id.desc()).limit(settings.INSIGHT_LOG_WINDOW).all()
        return [log for log in logs if not is_correct(log)]

    def _build_messages(self, log: ModelLog, model: Model, reviewer: Optional[Model]) -> list:
        system_prompt = (reviewer.prompt if reviewer is not None else None) or REVIEW_SYSTEM_PROMPT
        actual = log.actual if isinstance(log.actual, dict) else {}

        if model.problem_type == "classification":
            review_output = (
                f"- Expected Output: {expected_output(log.actual)}\n"
                f"- Predicted Output: {predicted_output(log.actual, log.predicted)}"
            )
        else:
            scores = ", ".join(
                f"{e.get('name')}: {e.get('score')}" for e in actual.get("evaluations", []) if isinstance(e, dict)
            )
            review_output = f"Reason of error: {actual.get('summary', 'n/a')}\nScores: {scores or 'n/a'}"

        user_content = "\n\n".join([
            parse_input_content(log.input),
            f"### Context (System Prompt)\n{parse_context(log.input, model.system_prompt_structure) or ''}",
            f"### Generated Output\n{parse_output_content(log.output)}",
            f"### Review Output\n{review_output}",
            REVIEW_TASK,
        ])
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]

    def run_review(
        self,
        log: ModelLog,
        model: Model,
        reviewer: Optional[Model] = None,
        company: Optional[Company] = None,
    ) -> List[Insight]:
        """
        Review one incorrect log and store the resulting insights.

        Stops at the insight cap and skips (problem, solution) pairs already
        recorded for the model. Raises LLMError when the review call fails.
        """
        if not self.has_capacity(model.id):
            logger.debug(f"Model {model.id} reached the insight cap, skipping review")
            return []
        if self.llm_client is None:
            raise LLMError("No LLM client configured")

        client, llm_model = optimization_client(self.llm_client, company)
        response = client.generate(self._build_messages(log, model, reviewer), response_format=ReviewList, model=llm_model)

        existing = {(_normalize(i.problem), _normalize(i.solution)) for i in self.get_insights(model.id)}
        version = PromptVersionService(self.db).active_version_key(model.id)
        remaining = self.max_insights - len(existing)

        created = []
        for review in response.parsed.reviews:
            if remaining <= 0:
                break
            key = (_normalize(review.problem), _normalize(review.solution))
            if not key[0] or key in existing:
                continue
            insight = Insight(
                model_id=model.id,
                problem=review.problem,
                solution=review.solution,
                data={"description": review.description, "log_id": log.id},
                version=version,
            )
            self.db.add(insight)
            existing.add(key)
            created.append(insight)
            remaining -= 1

        if created:
            self.db.commit()
            logger.info(f"Stored {len(created)} insights for model {model.id} from log {log.id}")
        return created

    def generate_insights(self, model: Model, company: Optional[Company] = None) -> List[Insight]:
        """Review a shuffled window of recent incorrect logs; individual review failures are logged"""
        candidates = self.sampling.shuffle(self.candidate_logs(model))
        created: List[Insight] = []
        reviews = 0
        for log in candidates:
            if reviews >= settings.INSIGHT_REVIEWS_PER_RUN or not self.has_capacity(model.id):
                break
            reviews += 1
            try:
                created.extend(self.run_review(log, model, company=company))
            except Exception:
                self.db.rollback()
                logger.exception(f"Insight review failed for log {log.id} of model {model.id}")
        return created
