"""Integration tests for entries, version and optimization API endpoints"""
import pytest
from promptloop.models.ab_test import ABTestModel
from promptloop.models.insight import Insight
from tests.fixtures.sample_data import SYSTEM_PROMPT, create_insight, insert_log

@pytest.mark.integration
class TestEntriesEndpoint:
    """Tests for GET /api/models/{model_id}/entries"""

    def test_get_entries(self, api_client, test_db, model):
        """Test listing entries filtered by correctness"""
        insert_log(test_db, model, actual={"correct": True}, is_correct=True)
        insert_log(test_db, model, actual={"correct": False}, is_correct=False)

        response = api_client.get(f"/api/models/{model.id}/entries", params={"type": "incorrect"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["entries"][0]["isCorrect"] is False

    def test_entries_page_size(self, api_client, test_db, model):
        for _ in range(3):
            insert_log(test_db, model)
        data = api_client.get(f"/api/models/{model.id}/entries", params={"pageSize": 2}).json()
        assert data["total"] == 3
        assert len(data["entries"]) == 2

    def test_entries_invalid_type(self, api_client, model):
        response = api_client.get(f"/api/models/{model.id}/entries", params={"type": "pending"})
        assert response.status_code == 400

    def test_entries_unknown_model(self, api_client):
        assert api_client.get("/api/models/99999/entries").status_code == 404

@pytest.mark.integration
class TestSuggestionsEndpoint:
    """Tests for POST /api/models/{model_id}/suggestions"""

    def test_suggestions_from_insights(self, api_client, test_db, model, fake_llm):
        """Test a candidate prompt is synthesized but not registered"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")

        response = api_client.post(f"/api/models/{model.id}/suggestions")

        assert response.status_code == 200
        assert response.json()["prompt"] == fake_llm.optimized_prompt
        assert test_db.query(ABTestModel).count() == 0
        assert test_db.query(Insight).filter(Insight.deleted_at.is_(None)).count() == 1

    def test_no_insights(self, api_client, model):
        """Test a model without insights gets no candidate"""
        response = api_client.post(f"/api/models/{model.id}/suggestions")
        assert response.status_code == 200
        assert response.json()["prompt"] is None

    def test_unknown_model(self, api_client):
        assert api_client.post("/api/models/99999/suggestions").status_code == 404

    def test_llm_failure(self, api_client, test_db, model, fake_llm):
        """Test a failing completion maps to a bad gateway"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")
        fake_llm.failing = {"text"}

        response = api_client.post(f"/api/models/{model.id}/suggestions")

        assert response.status_code == 502
        assert "scripted failure" in response.json()["detail"]

@pytest.mark.integration
class TestVersionEndpoints:
    """Tests for prompt deployment, listing and release"""

    def test_deploy_prompt(self, api_client, model):
        """Test deploying prompts creates active versions in sequence"""
        first = api_client.post(f"/api/models/{model.id}/optimized-prompt", json={"prompt": SYSTEM_PROMPT})
        second = api_client.post(f"/api/models/{model.id}/optimized-prompt", json={"prompt": "Answer in one sentence."})

        assert first.status_code == 200
        assert second.json()["version"] == "2"
        assert second.json()["activeVersion"] is True

        versions = api_client.get(f"/api/models/{model.id}/versions").json()
        assert [v["version"] for v in versions] == ["2", "1"]
        assert [v["activeVersion"] for v in versions] == [True, False]

    def test_deploy_empty_prompt(self, api_client, model):
        response = api_client.post(f"/api/models/{model.id}/optimized-prompt", json={"prompt": "  "})
        assert response.status_code == 400

    def test_deploy_unknown_model(self, api_client):
        response = api_client.post("/api/models/99999/optimized-prompt", json={"prompt": "Hi"})
        assert response.status_code == 404

    def test_release_version(self, api_client, test_db, model):
        """Test releasing an older version makes it the only active one"""
        api_client.post(f"/api/models/{model.id}/optimized-prompt", json={"prompt": SYSTEM_PROMPT})
        api_client.post(f"/api/models/{model.id}/optimized-prompt", json={"prompt": "Answer in one sentence."})

        response = api_client.post(f"/api/models/{model.id}/versions/1/release")

        assert response.status_code == 200
        assert response.json()["activeVersion"] is True
        versions = api_client.get(f"/api/models/{model.id}/versions").json()
        assert [v["activeVersion"] for v in versions] == [False, True]
        test_db.refresh(model)
        assert model.prompt == SYSTEM_PROMPT

    def test_release_missing_version(self, api_client, model):
        assert api_client.post(f"/api/models/{model.id}/versions/7/release").status_code == 404

@pytest.mark.integration
class TestWeeklyOptimizationEndpoint:
    """Tests for POST /api/optimization/weekly"""

    def test_weekly_run_forks_challenger(self, api_client, test_db, model, notifier):
        """Test a model with insights gets a challenger and users are notified"""
        create_insight(test_db, model, "Wrong language", "Always answer in English")

        response = api_client.post("/api/optimization/weekly")

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 1
        assert data["results"][0]["status"] == "forked"
        assert len(notifier.optimizations) == 1
        assert notifier.optimizations[0].recipients == ["ops@acme.test", "dev@acme.test"]

    def test_weekly_run_without_insights(self, api_client, model):
        data = api_client.post("/api/optimization/weekly").json()
        assert data["results"] == [{"modelId": model.id, "status": "no_suggestions"}]

@pytest.mark.integration
class TestHealthEndpoints:
    """Tests for service info endpoints"""

    def test_health(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, api_client):
        assert api_client.get("/").json()["message"] == "Prompt Optimization Loop API"
