"""
AI Evaluation Runner - runs function and LLM evaluators against model logs.

Function evaluators always run; prompt (LLM) evaluators run only when the
reviewer's sampling draw passes. Every evaluator invocation writes exactly one
EvaluationLog, and a failing evaluator never aborts the others. Gating
results are folded into the log's `actual` through the log write path.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.models.ab_test import ABTestModel
from promptloop.models.evaluation import EvaluationLog, EvaluationPrompt, EvaluatorType, ModelEvaluationPrompt
from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog
from promptloop.models.reviewers import ReviewersModel
from promptloop.services.function_evaluators import EvaluationContext, get_function_evaluator
from promptloop.services.llm_client import LLMClient, LLMError
from promptloop.services.log_service import LogService
from promptloop.services.sampling import SamplingPolicy
from promptloop.utils.log_parsing import parse_context, parse_input_content, parse_output_content

logger = logging.getLogger(__name__)

EVALUATION_INSTRUCTIONS = (
    "Evaluate the generated output against the criteria above. Respond with a JSON object "
    "containing `score` (0-10, where 10 means fully correct), `analysis` (one short paragraph) "
    "and `errors` (list of concrete problems, empty when none)."
)

class EvaluatorVerdict(BaseModel):
    """Structured reply expected from LLM evaluators"""
    score: float = Field(ge=0, le=10)
    analysis: str = ""
    errors: List[str] = Field(default_factory=list)

@dataclass
class EvaluatorAssignment:
    """An evaluator attached to a model, with the attachment's provider overrides"""
    evaluator: EvaluationPrompt
    association: Optional[ModelEvaluationPrompt] = None

    @property
    def is_function(self) -> bool:
        return self.evaluator.type == EvaluatorType.FUNCTION

@dataclass
class EvaluationOutcome:
    assignment: EvaluatorAssignment
    row: EvaluationLog
    result: Optional[Dict[str, Any]] = None

    @property
    def failed(self) -> bool:
        return self.result is None

class EvaluationRunner:
    """Service for dispatching evaluators against a log"""

    def __init__(
        self,
        db: Session,
        llm_client: Optional[LLMClient],
        sampling: SamplingPolicy,
        log_service: LogService,
    ):
        self.db = db
        self.llm_client = llm_client
        self.sampling = sampling
        self.log_service = log_service
        self.pass_score = settings.EVALUATION_PASS_SCORE
        self.max_retries = max(1, settings.EVALUATION_MAX_RETRIES)

    def evaluator_source_model_id(self, model: Model) -> int:
        """Optimized challengers are judged by the evaluators of their original model"""
        if not model.is_optimized:
            return model.id
        ab_test = self.db.query(ABTestModel).filter(
            ABTestModel.optimized_model_id == model.id
        ).order_by(ABTestModel.id.desc()).first()
        return ab_test.model_id if ab_test else model.id

    def evaluators_for(self, model: Model) -> List[EvaluatorAssignment]:
        source_id = self.evaluator_source_model_id(model)
        rows = self.db.query(ModelEvaluationPrompt, EvaluationPrompt).join(
            EvaluationPrompt, EvaluationPrompt.id == ModelEvaluationPrompt.evaluation_prompt_id
        ).filter(
            ModelEvaluationPrompt.model_id == source_id
        ).order_by(ModelEvaluationPrompt.id).all()
        return [EvaluatorAssignment(evaluator=evaluator, association=association) for association, evaluator in rows]

    def run_evaluations(
        self,
        log: ModelLog,
        model: Model,
        reviewer: ReviewersModel,
        assignments: List[EvaluatorAssignment],
        is_n8n: bool = False,
    ) -> List[EvaluationOutcome]:
        """
        Evaluate one log for one reviewer pairing.

        Returns the outcomes of every evaluator that ran, failed ones included.
        """
        function_evaluators = [a for a in assignments if a.is_function]
        prompt_evaluators = [a for a in assignments if not a.is_function]

        selected = list(function_evaluators)
        if self.sampling.should_sample(reviewer.evaluation_percentage, label=f"reviewer {reviewer.reviewer_id} log {log.id}"):
            selected.extend(prompt_evaluators)
        elif prompt_evaluators:
            logger.debug(f"Skipping {len(prompt_evaluators)} prompt evaluators for log {log.id}")

        if not selected:
            return []

        ctx = self._build_context(log, model)
        outcomes = [self._run_one(log, model, assignment, ctx, is_n8n) for assignment in selected]
        self._fold_results(log, outcomes)
        return outcomes

    def _build_context(self, log: ModelLog, model: Model) -> EvaluationContext:
        return EvaluationContext(
            log_input=log.input,
            log_output=log.output,
            parsed_output=parse_output_content(log.output),
            user_content=parse_input_content(log.input),
            context=parse_context(log.input, model.system_prompt_structure),
        )

    def _run_one(self, log: ModelLog, model: Model, assignment: EvaluatorAssignment, ctx: EvaluationContext, is_n8n: bool) -> EvaluationOutcome:
        evaluator = assignment.evaluator
        try:
            if assignment.is_function:
                result = self._run_function(evaluator, ctx)
            else:
                result = self._run_prompt(assignment, ctx, is_n8n)
        except Exception as e:
            logger.exception(f"Evaluator {evaluator.name} failed on log {log.id}")
            row = EvaluationLog(
                model_log_id=log.id,
                evaluator_id=evaluator.id,
                model_id=model.id,
                is_correct=None,
                score=None,
                summary=f"Evaluator failed: {e}",
                errors=[str(e)],
            )
            self.db.add(row)
            self.db.commit()
            return EvaluationOutcome(assignment=assignment, row=row, result=None)

        score = float(result.get("score", 0))
        row = EvaluationLog(
            model_log_id=log.id,
            evaluator_id=evaluator.id,
            model_id=model.id,
            is_correct=score >= self.pass_score,
            score=score,
            summary=result.get("analysis", ""),
            errors=list(result.get("errors") or []),
        )
        self.db.add(row)
        self.db.commit()
        return EvaluationOutcome(assignment=assignment, row=row, result=result)

    def _run_function(self, evaluator: EvaluationPrompt, ctx: EvaluationContext) -> Dict[str, Any]:
        function = get_function_evaluator(evaluator.function_name or "")
        ctx.parameters = dict(evaluator.parameters or {})
        return function(ctx)

    def _run_prompt(self, assignment: EvaluatorAssignment, ctx: EvaluationContext, is_n8n: bool) -> Dict[str, Any]:
        if self.llm_client is None:
            raise LLMError("No LLM client configured")

        evaluator = assignment.evaluator
        association = assignment.association
        client = self.llm_client
        provider_model = evaluator.default_provider_model
        if association is not None:
            client = client.with_credentials(association.provider, association.token)
            provider_model = association.provider_model or provider_model

        system = evaluator.prompt or ""
        if ctx.context:
            system = f"{system}\n\nSystem prompt of the evaluated model:\n{ctx.context}"
        user_parts = [f"User Input:\n{ctx.user_content}", f"Generated Output:\n{ctx.parsed_output}"]
        if is_n8n:
            user_parts.append("The output was produced inside an automation workflow node.")
        user_parts.append(EVALUATION_INSTRUCTIONS)
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": "\n\n".join(user_parts)},
        ]

        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = client.generate(messages, response_format=EvaluatorVerdict, model=provider_model)
                return response.parsed.model_dump()
            except LLMError as e:
                last_error = e
                logger.warning(f"Evaluator {evaluator.name} attempt {attempt} failed: {e}")
        raise last_error

    def _fold_results(self, log: ModelLog, outcomes: List[EvaluationOutcome]) -> None:
        """Write gating results into `actual` so the update pipeline judges correctness"""
        gating = [o for o in outcomes if not o.failed and not o.assignment.evaluator.is_informative]
        if not gating:
            return
        if log.actual is not None:
            logger.debug(f"Log {log.id} already has ground truth, keeping it")
            return

        actual: Dict[str, Any] = {"evaluations": []}
        failing = []
        for outcome in gating:
            name = outcome.assignment.evaluator.name
            score = float(outcome.result.get("score", 0))
            actual["evaluations"].append({
                "name": name,
                "score": score,
                "analysis": outcome.result.get("analysis", ""),
                "errors": list(outcome.result.get("errors") or []),
            })
            actual[name] = score
            if score < self.pass_score:
                failing.append(outcome.result.get("analysis") or name)
        actual["correct"] = not failing
        if failing:
            actual["summary"] = "; ".join(failing)

        log.processed = True
        log.auto_evaluation_processed = True
        self.log_service.update_log(log.id, actual=actual)
