"""Unit tests for optimization_service.py"""
import pytest
from promptloop.models.ab_test import ABTestModel
from promptloop.models.model import Model
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.optimization_service import OptimizationService
from tests.fixtures.sample_data import create_insight, create_model

@pytest.fixture
def optimization_service(test_db, fake_llm, sampling, notifier):
    return OptimizationService(test_db, fake_llm, sampling, notifier)

class TestOptimizeModel:
    """Tests for one optimization cycle"""

    def test_no_insights(self, optimization_service, model, company, notifier):
        """Test a model without insights is left unchanged"""
        result = optimization_service.optimize_model(model, company)
        assert result == {"modelId": model.id, "status": "no_suggestions"}
        assert notifier.optimizations == []

    def test_first_candidate_forks_and_notifies(self, optimization_service, test_db, model, company, notifier, fake_llm):
        """Test the first candidate forks a challenger and notifies the company"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")

        result = optimization_service.optimize_model(model, company)

        assert result["status"] == "forked"
        assert len(notifier.optimizations) == 1
        notification = notifier.optimizations[0]
        assert notification.optimized_model_id == result["optimizedModelId"]
        assert notification.new_prompt == fake_llm.optimized_prompt
        assert notification.recipients == ["ops@acme.test", "dev@acme.test"]

    def test_later_candidates_refine_challenger(self, optimization_service, test_db, model, company, notifier, fake_llm):
        """Test later cycles read the challenger's insights and update it in place"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")
        first = optimization_service.optimize_model(model, company)
        challenger_id = first["optimizedModelId"]

        create_insight(test_db, test_db.get(Model, challenger_id), "Too long", "Answer in two sentences")
        fake_llm.optimized_prompt = "You are a precise support assistant. Answer in English in two sentences."
        second = optimization_service.optimize_model(model, company)

        assert second == {"modelId": model.id, "status": "updated", "optimizedModelId": challenger_id}
        assert test_db.query(ABTestModel).count() == 1
        assert len(notifier.optimizations) == 1

    def test_registered_candidate_consumes_insights(self, optimization_service, test_db, model, company):
        """Test the insights behind a registered candidate are soft-deleted"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")

        optimization_service.optimize_model(model, company)

        test_db.expire_all()
        assert optimization_service.insights.count_insights(model.id) == 0

    def test_failed_registration_keeps_insights(self, optimization_service, test_db, model, company, monkeypatch):
        """Test insights stay live when the candidate cannot be registered"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")

        def reject(*args, **kwargs):
            raise ValueError("rejected")
        monkeypatch.setattr(optimization_service.ab_tests, "register_candidate", reject)

        with pytest.raises(ValueError):
            optimization_service.optimize_model(model, company)

        test_db.rollback()
        test_db.expire_all()
        assert optimization_service.insights.count_insights(model.id) == 1

class TestWeeklyOptimization:
    """Tests for the weekly batch"""

    def test_failures_are_isolated(self, optimization_service, test_db, company, model, fake_llm):
        """Test one failing model does not stop the batch"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")
        bare = create_model(test_db, company, name="faq-bot", prompt=None)
        create_insight(test_db, bare, "Too long", "Be brief")
        create_model(test_db, company, name="grader", is_reviewer=True)
        fake_llm.failing = {"text"}

        results = optimization_service.run_weekly_optimization()

        assert [(r["modelId"], r["status"]) for r in results] == [(model.id, "error"), (bare.id, "no_suggestions")]
        assert "scripted failure" in results[0]["error"]

    def test_apply_suggestions_unknown_model(self, optimization_service):
        with pytest.raises(EntityNotFoundError):
            optimization_service.apply_suggestions(999)
