"""Unit tests for prompt_optimizer.py"""
import pytest
from promptloop.models.insight import Insight
from promptloop.services.llm_client import LLMError
from promptloop.services.prompt_optimizer import PromptOptimizer, PROMPT_ENHANCEMENT_SYSTEM_PROMPT, strip_code_fences
from promptloop.services.prompt_version_service import PromptVersionService
from tests.fixtures.sample_data import SYSTEM_PROMPT, create_insight, create_model

@pytest.fixture
def optimizer(test_db, fake_llm, sampling):
    return PromptOptimizer(test_db, fake_llm, sampling)

@pytest.fixture
def insights(test_db, model):
    return [
        create_insight(test_db, model, "Vague answers", "Ask for the order id", "Answers lacked specifics"),
        create_insight(test_db, model, "Wrong language", "Always answer in English"),
    ]

class TestApplySuggestions:
    """Tests for synthesizing a candidate prompt"""

    def test_no_insights_means_no_candidate(self, optimizer, model, fake_llm):
        """Test nothing is generated without insights"""
        assert optimizer.apply_suggestions(model) is None
        assert fake_llm.calls == []

    def test_candidate_from_insights(self, optimizer, test_db, model, insights, fake_llm):
        """Test the candidate comes from the current prompt and every insight"""
        candidate = optimizer.apply_suggestions(model)

        assert candidate == fake_llm.optimized_prompt
        messages = fake_llm.calls[0]["messages"]
        assert messages[0]["content"] == PROMPT_ENHANCEMENT_SYSTEM_PROMPT
        assert f"Original Prompt:\n{SYSTEM_PROMPT}" in messages[1]["content"]
        assert "Problem Identified: Answers lacked specifics" in messages[1]["content"]
        assert "Problem Identified: Wrong language" in messages[1]["content"]
        assert "Suggested Solution: Always answer in English" in messages[1]["content"]

    def test_candidate_keeps_insights_live(self, optimizer, test_db, model, insights):
        """Test building a candidate alone consumes nothing"""
        assert optimizer.apply_suggestions(model) is not None

        test_db.expire_all()
        assert optimizer.insights.count_insights(model.id) == 2
        assert all(i.deleted_at is None for i in test_db.query(Insight).all())

    def test_suggest_returns_used_insights(self, optimizer, model, insights, fake_llm):
        """Test the suggestion carries the insights it was built from"""
        suggestion = optimizer.suggest(model)

        assert suggestion.prompt == fake_llm.optimized_prompt
        assert {i.id for i in suggestion.insights} == {i.id for i in insights}

    def test_consumed_insights_are_soft_deleted(self, optimizer, test_db, model, insights):
        """Test consumed insights no longer count"""
        suggestion = optimizer.suggest(model)
        optimizer.consume_insights(suggestion.insights)

        test_db.expire_all()
        assert optimizer.insights.count_insights(model.id) == 0
        assert all(i.deleted_at is not None for i in test_db.query(Insight).all())

    def test_unchanged_prompt_is_no_candidate(self, optimizer, test_db, model, insights, fake_llm):
        """Test returning the same prompt is a no-suggestion outcome that keeps insights"""
        fake_llm.optimized_prompt = f"  {SYSTEM_PROMPT}\n"

        assert optimizer.apply_suggestions(model) is None
        assert optimizer.insights.count_insights(model.id) == 2

    def test_code_fences_are_stripped(self, optimizer, model, insights, fake_llm):
        """Test fenced replies are unwrapped"""
        fake_llm.optimized_prompt = "```\nBe concise and cite the order id.\n```"
        assert optimizer.apply_suggestions(model) == "Be concise and cite the order id."

    def test_model_without_prompt(self, optimizer, test_db, company, fake_llm):
        """Test models without any prompt get no candidate"""
        bare = create_model(test_db, company, name="bare", prompt=None)
        create_insight(test_db, bare, "Problem", "Solution")
        assert optimizer.apply_suggestions(bare) is None
        assert fake_llm.calls == []

    def test_no_llm_client(self, test_db, model, insights):
        """Test suggestions without a client raise LLMError"""
        with pytest.raises(LLMError):
            PromptOptimizer(test_db, None).apply_suggestions(model)

class TestCurrentPrompt:
    """Tests for the prompt being improved"""

    def test_active_version_wins(self, optimizer, test_db, model):
        """Test the active version prompt is preferred over the served prompt"""
        assert optimizer.current_prompt(model) == SYSTEM_PROMPT
        PromptVersionService(test_db).seed_initial_version(model.id, "Versioned prompt")
        assert optimizer.current_prompt(model) == "Versioned prompt"

    def test_strip_code_fences(self):
        """Test fence removal"""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
