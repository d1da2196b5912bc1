"""
Domain events and the bounded worker pool that runs the log pipeline.

The log write path publishes `LogCreated` / `LogUpdated` after commit; the
dispatcher hands them to subscribed handlers on a ThreadPoolExecutor so the
caller never waits on evaluation or optimization.
"""
import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class LogCreated:
    log_id: int

@dataclass(frozen=True)
class LogUpdated:
    log_id: int

Handler = Callable[[object], None]

class PipelineDispatcher:
    """Fire-and-forget event dispatch with observable completion"""

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pipeline")
        self._handlers: Dict[type, List[Handler]] = defaultdict(list)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event) -> Future:
        """Queue an event for its handlers; returns a Future completing when all ran"""
        if self._closed:
            raise RuntimeError("Pipeline dispatcher is shut down")
        handlers = list(self._handlers.get(type(event), []))
        future = self._executor.submit(self._run, event, handlers)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, event, handlers: List[Handler]) -> None:
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Pipeline handler {getattr(handler, '__name__', handler)} failed for {event}")

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = 30.0) -> bool:
        """
        Wait until no work is outstanding, including events published by
        handlers while draining. Returns False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = list(self._pending)
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait(pending, timeout=remaining)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait_for_pending)
