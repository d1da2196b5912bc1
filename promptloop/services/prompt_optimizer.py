"""Prompt Optimizer - synthesizes a candidate prompt from accumulated insights"""
import logging
from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from promptloop.config import settings
from promptloop.models.company import Company
from promptloop.models.insight import Insight
from promptloop.models.model import Model
from promptloop.services.insight_service import InsightGenerator
from promptloop.services.llm_client import LLMClient, LLMError, optimization_client
from promptloop.services.prompt_version_service import PromptVersionService
from promptloop.services.sampling import SamplingPolicy

logger = logging.getLogger(__name__)

PROMPT_ENHANCEMENT_SYSTEM_PROMPT = """You are an expert Prompt Optimization Assistant. Critically analyze,
evaluate and systematically enhance the prompt provided by the user.

1. Deep analysis: identify the original intent, assumptions, context and expected outcomes.
2. Address every listed problem: integrate practical solutions directly into the revised prompt.
3. Keep the original intent: clarify ambiguous terms, instructions and conditions.
4. Improve clarity, precision and specificity; give explicit parameters to prevent misinterpretation.
5. Improve or expand the original examples when they exist; never drop them.

Produce ONLY the fully enhanced prompt. Do not include the original prompt or any explanation."""

def strip_code_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()

class Suggestion(NamedTuple):
    prompt: str
    insights: List[Insight]

class PromptOptimizer:
    """Service for turning insights into a new candidate prompt"""

    def __init__(self, db: Session, llm_client: Optional[LLMClient], sampling: Optional[SamplingPolicy] = None):
        self.db = db
        self.llm_client = llm_client
        self.insights = InsightGenerator(db, llm_client, sampling or SamplingPolicy())
        self.versions = PromptVersionService(db)

    def current_prompt(self, model: Model) -> Optional[str]:
        """Active version prompt, falling back to the model's served prompt"""
        active = self.versions.get_active_version(model.id)
        return (active.prompt if active else None) or model.prompt

    def suggest(self, model: Model, company: Optional[Company] = None) -> Optional[Suggestion]:
        """
        Build a candidate prompt from the current prompt and newest insights.

        Returns None when there is nothing to act on or no real change came
        back; that is a valid outcome, not an error. The insights stay live
        until the caller consumes them.
        """
        prompt = self.current_prompt(model)
        suggestions = self.insights.get_insights(model.id, limit=settings.SUGGESTIONS_LIMIT)
        if not suggestions or not prompt:
            return None
        if self.llm_client is None:
            raise LLMError("No LLM client configured")

        numbered = "\n\n".join(
            f"{i}. Problem Identified: {(s.data or {}).get('description') or s.problem}\n"
            f"   Suggested Solution: {s.solution}"
            for i, s in enumerate(suggestions, start=1)
        )
        messages = [
            {"role": "system", "content": PROMPT_ENHANCEMENT_SYSTEM_PROMPT},
            {"role": "user", "content": (
                f"Original Prompt:\n{prompt}\n\n"
                f"Incorporate the following suggestions to enhance the original prompt, listed by priority:\n\n"
                f"{numbered}\n\n"
                "Only output the enhanced prompt itself. Keep the examples and important notes of the original prompt."
            )},
        ]

        client, llm_model = optimization_client(self.llm_client, company)
        response = client.generate(messages, model=llm_model)
        candidate = strip_code_fences(response.text or "")

        if not candidate or candidate == prompt.strip():
            logger.info(f"No prompt improvement found for model {model.id}")
            return None

        logger.info(f"Generated candidate prompt for model {model.id} from {len(suggestions)} insights")
        return Suggestion(prompt=candidate, insights=suggestions)

    def apply_suggestions(self, model: Model, company: Optional[Company] = None) -> Optional[str]:
        """Candidate prompt only; nothing is consumed or registered"""
        suggestion = self.suggest(model, company)
        return suggestion.prompt if suggestion else None

    def consume_insights(self, insights: List[Insight]) -> None:
        """Soft-delete insights folded into a registered prompt, reopening the insight gate"""
        consumed_at = datetime.now()
        for insight in insights:
            insight.deleted_at = consumed_at
        self.db.commit()
