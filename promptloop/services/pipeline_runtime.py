"""Process-wide wiring of the log pipeline: dispatcher, collaborators and handlers"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.services.cache_store import InMemoryCacheStore
from promptloop.services.llm_client import LLMClient
from promptloop.services.log_service import LogService
from promptloop.services.notifier import LoggingNotifier, Notifier
from promptloop.services.optimization_orchestrator import OptimizationOrchestrator
from promptloop.services.pipeline import LogCreated, LogUpdated, PipelineDispatcher
from promptloop.services.sampling import SamplingPolicy

logger = logging.getLogger(__name__)

class PipelineRuntime:
    """
    Owns the dispatcher and the collaborators shared by every pipeline run.

    Each handler opens its own session from `session_factory`, so pipeline
    work never shares a session with the request that published the event.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        llm_client: Optional[LLMClient] = None,
        notifier: Optional[Notifier] = None,
        cache=None,
        sampling: Optional[SamplingPolicy] = None,
        max_workers: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.llm_client = llm_client
        self.notifier = notifier or LoggingNotifier()
        self.cache = cache if cache is not None else InMemoryCacheStore()
        self.sampling = sampling or SamplingPolicy()
        self.dispatcher = PipelineDispatcher(max_workers=max_workers or settings.PIPELINE_MAX_WORKERS)
        self.dispatcher.subscribe(LogCreated, self.on_log_created)
        self.dispatcher.subscribe(LogUpdated, self.on_log_updated)

    def orchestrator(self, db: Session) -> OptimizationOrchestrator:
        return OptimizationOrchestrator(
            db,
            self.llm_client,
            self.sampling,
            notifier=self.notifier,
            cache=self.cache,
            publisher=self.dispatcher,
        )

    def log_service(self, db: Session) -> LogService:
        return LogService(db, publisher=self.dispatcher, cache=self.cache)

    def on_log_created(self, event: LogCreated) -> None:
        db = self.session_factory()
        try:
            self.orchestrator(db).handle_log_created(event.log_id)
        finally:
            db.close()

    def on_log_updated(self, event: LogUpdated) -> None:
        db = self.session_factory()
        try:
            self.orchestrator(db).handle_log_updated(event.log_id)
        finally:
            db.close()

    def drain(self, timeout: Optional[float] = 30.0) -> bool:
        return self.dispatcher.drain(timeout)

    def shutdown(self) -> None:
        self.dispatcher.shutdown()
