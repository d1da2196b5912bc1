"""
Optimization Orchestrator - per-log pipeline for created and updated logs.

Every side-effecting step runs through `_safe_step`: a failure is logged and
the remaining steps still run. Gates (inactive model, reviewer model,
optimized model, replay log) short-circuit without raising.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.models.ab_test import ABTestModel
from promptloop.models.agent import Agent, AgentLog, AgentNode
from promptloop.models.company import Company
from promptloop.models.model import Model
from promptloop.models.model_log import ModelLog
from promptloop.services.ab_test_service import ABTestService
from promptloop.services.correctness_evaluator import is_correct
from promptloop.services.evaluation_service import EvaluationRunner
from promptloop.services.insight_service import InsightGenerator
from promptloop.services.llm_client import LLMClient, optimization_client
from promptloop.services.log_service import LogService, entries_cache_pattern
from promptloop.services.metric_service import MetricCalculator
from promptloop.services.metrics_cache_service import MetricsCacheService
from promptloop.services.notifier import ModelFailureNotification, Notifier
from promptloop.services.optimization_service import OptimizationService, get_company_emails, get_company_for_model
from promptloop.services.prompt_version_service import PromptVersionService
from promptloop.services.reviewer_service import ReviewerService
from promptloop.services.sampling import SamplingPolicy
from promptloop.services.system_prompt_detector import SystemPromptStructureDetector
from promptloop.utils.log_parsing import parse_input_content, parse_system_prompt
from promptloop.utils.output_processing import detect_error_message

logger = logging.getLogger(__name__)

@dataclass
class PipelineContext:
    """Entities loaded once per pipeline run"""
    log: ModelLog
    model: Model
    company: Optional[Company] = None
    is_n8n: bool = False
    completed_steps: List[str] = field(default_factory=list)
    failed_steps: List[str] = field(default_factory=list)

    @property
    def is_replay(self) -> bool:
        return self.log.original_log_id is not None

class OptimizationOrchestrator:
    """Coordinates evaluation, reviewer sampling, A/B bookkeeping and optimization for one log"""

    def __init__(
        self,
        db: Session,
        llm_client: Optional[LLMClient],
        sampling: SamplingPolicy,
        notifier: Optional[Notifier] = None,
        cache=None,
        publisher=None,
    ):
        self.db = db
        self.llm_client = llm_client
        self.sampling = sampling
        self.notifier = notifier
        self.cache = cache

        self.log_service = LogService(db, publisher=publisher, cache=cache)
        self.versions = PromptVersionService(db)
        self.ab_tests = ABTestService(db, self.versions)
        self.reviewers = ReviewerService(db)
        self.evaluations = EvaluationRunner(db, llm_client, sampling, self.log_service)
        self.insights = InsightGenerator(db, llm_client, sampling)
        self.optimization = OptimizationService(db, llm_client, sampling, notifier)
        self.metrics = MetricCalculator(db)
        self.detector = SystemPromptStructureDetector(llm_client)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def load_context(self, log_id: int) -> Optional[PipelineContext]:
        log = self.db.query(ModelLog).filter(ModelLog.id == log_id).first()
        if not log:
            logger.warning(f"Log {log_id} not found, skipping pipeline")
            return None
        model = self.db.query(Model).filter(Model.id == log.model_id).first()
        if not model:
            logger.warning(f"Model {log.model_id} of log {log_id} not found, skipping pipeline")
            return None
        company = get_company_for_model(self.db, model)
        if company is None:
            logger.warning(f"No company resolved for model {model.id}")
        return PipelineContext(log=log, model=model, company=company, is_n8n=self.is_n8n(model))

    def is_n8n(self, model: Model) -> bool:
        """N8N flag on the model itself or on any agent owning it"""
        if (model.flags or {}).get("isN8N"):
            return True
        agents = self.db.query(Agent).join(AgentNode, AgentNode.agent_id == Agent.id).filter(
            AgentNode.model_id == model.id
        ).all()
        return any((agent.flags or {}).get("isN8N") for agent in agents)

    def _safe_step(self, ctx: PipelineContext, name: str, step: Callable[..., Any], *args) -> Any:
        try:
            result = step(ctx, *args)
            ctx.completed_steps.append(name)
            return result
        except Exception:
            self.db.rollback()
            ctx.failed_steps.append(name)
            logger.exception(f"Pipeline step '{name}' failed for log {ctx.log.id} (model {ctx.model.id})")
            return None

    # ------------------------------------------------------------------
    # LogCreated
    # ------------------------------------------------------------------

    def handle_log_created(self, log_id: int) -> Optional[PipelineContext]:
        ctx = self.load_context(log_id)
        if ctx is None:
            return None
        model = ctx.model
        if not model.active:
            logger.debug(f"Model {model.id} inactive, skipping log {log_id}")
            return ctx

        self._safe_step(ctx, "detect_structure", self._detect_structure)
        self._safe_step(ctx, "seed_version", self._seed_version)
        self._safe_step(ctx, "sync_log_version", self._sync_log_version)

        if not model.is_reviewer:
            self._safe_step(ctx, "ensure_reviewer", self._ensure_reviewer)
            self._safe_step(ctx, "informative_evaluators", self._ensure_informative_evaluators)
        self._safe_step(ctx, "invalidate_entries", self._invalidate_entries)

        if model.is_reviewer:
            return ctx

        self._safe_step(ctx, "evaluations", self._run_evaluations)
        self._safe_step(ctx, "ab_replay", self._run_ab_replays)
        self._safe_step(ctx, "health_check", self._health_check)
        self._safe_step(ctx, "optimization", self._maybe_optimize)

        if not model.is_optimized and not ctx.is_replay:
            self._safe_step(ctx, "refresh_cache", self._refresh_cache)
        return ctx

    def _detect_structure(self, ctx: PipelineContext) -> None:
        model = ctx.model
        if model.system_prompt_structure:
            return
        earlier = self.db.query(ModelLog.id).filter(
            ModelLog.model_id == model.id,
            ModelLog.id < ctx.log.id
        ).first()
        if earlier is not None:
            return
        structure = self.detector.detect([ctx.log])
        if structure:
            model.system_prompt_structure = structure
            self.db.commit()
            logger.info(f"Detected system prompt structure for model {model.id}: {structure.get('path')}")

    def _seed_version(self, ctx: PipelineContext) -> None:
        if ctx.model.is_optimized or ctx.is_replay:
            return
        prompt = parse_system_prompt(ctx.log.input, ctx.model.system_prompt_structure)
        self.versions.seed_initial_version(ctx.model.id, prompt)

    def _sync_log_version(self, ctx: PipelineContext) -> None:
        key = self.versions.active_version_key(ctx.model.id)
        if key and ctx.log.version != key:
            ctx.log.version = key
            self.db.commit()

    def _ensure_reviewer(self, ctx: PipelineContext) -> None:
        self.reviewers.ensure_reviewer(ctx.model, ctx.is_n8n)

    def _ensure_informative_evaluators(self, ctx: PipelineContext) -> None:
        self.reviewers.ensure_informative_evaluators(ctx.model, ctx.company.id if ctx.company else None)

    def _invalidate_entries(self, ctx: PipelineContext) -> None:
        if self.cache is not None:
            self.cache.delete_pattern(entries_cache_pattern(ctx.model.id))

    def _run_evaluations(self, ctx: PipelineContext) -> None:
        assignments = self.evaluations.evaluators_for(ctx.model)
        for reviewer in self.reviewers.get_reviewers(ctx.model.id):
            if not self.db.query(Model.id).filter(Model.id == reviewer.reviewer_id).first():
                logger.warning(f"Reviewer model {reviewer.reviewer_id} of model {ctx.model.id} not found")
                continue
            self._safe_step(ctx, f"evaluate_reviewer_{reviewer.reviewer_id}", self._evaluate_with, reviewer, assignments)

    def _evaluate_with(self, ctx: PipelineContext, reviewer, assignments) -> None:
        self.evaluations.run_evaluations(ctx.log, ctx.model, reviewer, assignments, ctx.is_n8n)

    def _run_ab_replays(self, ctx: PipelineContext) -> None:
        if ctx.model.is_optimized or ctx.is_replay:
            return
        for ab_test in self.ab_tests.get_ab_tests(ctx.model.id):
            if self.sampling.should_sample(ab_test.percentage, label=f"ab test {ab_test.id} log {ctx.log.id}"):
                self._safe_step(ctx, f"ab_replay_{ab_test.id}", self._replay, ab_test)

    def _replay(self, ctx: PipelineContext, ab_test: ABTestModel) -> ModelLog:
        """Run the challenger's prompt on this log's user content and log it as a replay"""
        optimized = self.db.query(Model).filter(Model.id == ab_test.optimized_model_id).first()
        if optimized is None:
            logger.warning(f"Optimized model {ab_test.optimized_model_id} of A/B test {ab_test.id} not found")
            return None
        if self.llm_client is None:
            raise RuntimeError("No LLM client configured for A/B replay")

        messages = [
            {"role": "system", "content": optimized.prompt or ""},
            {"role": "user", "content": parse_input_content(ctx.log.input)},
        ]
        client, llm_model = optimization_client(self.llm_client, ctx.company)
        response = client.generate(messages, model=llm_model)
        return self.log_service.create_log(
            optimized.id,
            input=messages,
            output={
                "choices": [{"message": {"content": response.text}}],
                "usage": {"total_tokens": response.tokens_used},
            },
            original_log_id=ctx.log.id,
            environment=ctx.log.environment,
        )

    def _health_check(self, ctx: PipelineContext) -> None:
        self.metrics.record_health_check(ctx.model, ctx.log)

    def _maybe_optimize(self, ctx: PipelineContext) -> None:
        if ctx.model.is_optimized or ctx.is_replay:
            return
        if not self.sampling.should_sample(settings.OPTIMIZATION_TRIGGER_PERCENTAGE, label=f"optimization log {ctx.log.id}"):
            return
        result = self.optimization.optimize_model(ctx.model, ctx.company)
        logger.info(f"Optimization cycle for model {ctx.model.id}: {result['status']}")

    def _refresh_cache(self, ctx: PipelineContext) -> None:
        if self.cache is None:
            return
        MetricsCacheService(self.db, self.cache).refresh_all(ctx.model)

    # ------------------------------------------------------------------
    # LogUpdated
    # ------------------------------------------------------------------

    def handle_log_updated(self, log_id: int) -> Optional[PipelineContext]:
        ctx = self.load_context(log_id)
        if ctx is None:
            return None
        model = ctx.model
        if not model.active or model.is_reviewer:
            return ctx

        incorrect = not is_correct(ctx.log)
        if incorrect:
            self._safe_step(ctx, "insight_reviews", self._run_insight_reviews)

        if ctx.log.actual is not None and incorrect:
            self._safe_step(ctx, "mark_error", self._mark_error)
            self._safe_step(ctx, "mark_agent_failed", self._mark_agent_failed)
            self._safe_step(ctx, "failure_notification", self._notify_failure)

        if ctx.log.actual is not None and not ctx.log.metric_processed:
            self._safe_step(ctx, "metrics", self._compute_metrics)
        return ctx

    def _run_insight_reviews(self, ctx: PipelineContext) -> None:
        # Insights land where the optimization cycle reads and consumes them
        target = self.ab_tests.optimization_target(ctx.model)
        if not self.insights.has_capacity(target.id):
            logger.debug(f"Model {target.id} reached the insight cap")
            return
        for insight_model in self.reviewers.get_insight_models(ctx.model.id):
            if not self.sampling.should_sample(insight_model.percentage, label=f"insight model {insight_model.insight_model_id}"):
                continue
            reviewer = self.db.query(Model).filter(Model.id == insight_model.insight_model_id).first()
            if reviewer is None:
                logger.warning(f"Insight model {insight_model.insight_model_id} not found")
                continue
            self._safe_step(ctx, f"insight_review_{reviewer.id}", self._review_with, reviewer, target)

    def _review_with(self, ctx: PipelineContext, reviewer: Model, target: Model) -> None:
        self.insights.run_review(ctx.log, target, reviewer, ctx.company)

    def _mark_error(self, ctx: PipelineContext) -> None:
        self.log_service.mark_error(ctx.log)

    def _mark_agent_failed(self, ctx: PipelineContext) -> None:
        if ctx.log.agent_log_id is None:
            return
        agent_log = self.db.query(AgentLog).filter(AgentLog.id == ctx.log.agent_log_id).first()
        if agent_log is None:
            logger.warning(f"AgentLog {ctx.log.agent_log_id} of log {ctx.log.id} not found")
            return
        agent_log.status = "failed_model"
        self.db.commit()

    def _notify_failure(self, ctx: PipelineContext) -> None:
        if self.notifier is None:
            return
        log = ctx.log
        actual = log.actual if isinstance(log.actual, dict) else {}
        message = actual.get("summary") or detect_error_message(log.output) or "Entry was evaluated as incorrect"

        agent_name = None
        if log.agent_log_id is not None:
            agent = self.db.query(Agent).join(AgentLog, AgentLog.agent_id == Agent.id).filter(
                AgentLog.id == log.agent_log_id
            ).first()
            agent_name = agent.name if agent else None

        self.notifier.send_model_failure(ModelFailureNotification(
            model_id=ctx.model.id,
            model_name=ctx.model.name,
            log_id=log.id,
            error_message=str(message),
            recipients=get_company_emails(self.db, ctx.company),
            agent_name=agent_name,
            agent_log_id=log.agent_log_id,
        ))

    def _compute_metrics(self, ctx: PipelineContext) -> None:
        self.metrics.compute_for_version(ctx.model, ctx.log.version)
