"""Unit tests for pipeline.py"""
import logging
import threading
import pytest
from promptloop.services.pipeline import LogCreated, LogUpdated, PipelineDispatcher

@pytest.fixture
def dispatcher():
    pipeline = PipelineDispatcher(max_workers=1)
    yield pipeline
    pipeline.shutdown()

class TestPipelineDispatcher:
    """Tests for event dispatch on the worker pool"""

    def test_handlers_run_in_subscription_order(self, dispatcher):
        """Test every handler of an event type runs, in order"""
        seen = []
        dispatcher.subscribe(LogCreated, lambda e: seen.append(("first", e.log_id)))
        dispatcher.subscribe(LogCreated, lambda e: seen.append(("second", e.log_id)))
        dispatcher.subscribe(LogUpdated, lambda e: seen.append(("updated", e.log_id)))

        dispatcher.publish(LogCreated(7))

        assert dispatcher.drain(5)
        assert seen == [("first", 7), ("second", 7)]

    def test_failing_handler_is_logged(self, dispatcher, caplog):
        """Test a failing handler does not stop the others"""
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        dispatcher.subscribe(LogUpdated, broken)
        dispatcher.subscribe(LogUpdated, lambda e: seen.append(e.log_id))

        with caplog.at_level(logging.ERROR, logger="promptloop.services.pipeline"):
            dispatcher.publish(LogUpdated(3))
            assert dispatcher.drain(5)

        assert seen == [3]
        assert "broken" in caplog.text

    def test_drain_waits_for_nested_events(self, dispatcher):
        """Test events published by handlers are drained too"""
        seen = []
        dispatcher.subscribe(LogCreated, lambda e: dispatcher.publish(LogUpdated(e.log_id)))
        dispatcher.subscribe(LogUpdated, lambda e: seen.append(e.log_id))

        dispatcher.publish(LogCreated(1))

        assert dispatcher.drain(5)
        assert seen == [1]
        assert dispatcher.pending_count() == 0

    def test_drain_timeout(self, dispatcher):
        """Test drain reports outstanding work on timeout"""
        release = threading.Event()
        dispatcher.subscribe(LogCreated, lambda e: release.wait(5))

        dispatcher.publish(LogCreated(1))

        assert dispatcher.drain(0.05) is False
        release.set()
        assert dispatcher.drain(5) is True

    def test_publish_after_shutdown(self):
        """Test a shut down dispatcher refuses events"""
        dispatcher = PipelineDispatcher(max_workers=1)
        dispatcher.shutdown()
        with pytest.raises(RuntimeError):
            dispatcher.publish(LogCreated(1))
