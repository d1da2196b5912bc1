"""Detection of where the system prompt lives inside a model's logged inputs"""
import json
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from promptloop.models.model_log import ModelLog
from promptloop.services.llm_client import LLMClient
from promptloop.utils.log_parsing import resolve_path

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5
MIN_PROMPT_LENGTH = 10

NESTED_PATTERNS = (
    ["input", "options", "systemMessage"],
    ["systemMessage"],
    ["options", "systemMessage"],
    ["prompt"],
    ["system"],
)

DETECTION_SYSTEM_PROMPT = """You are an expert at analyzing data structures and identifying where system prompts are located.
Common patterns include messages[0].content (chat-style inputs), input.options.systemMessage,
systemMessage, prompt and system. Look for fields that contain instructional text and appear
consistently across the inputs. Return the detected path and your confidence."""

class DetectedStructure(BaseModel):
    path: str = Field(description='Path to the system prompt, e.g. "messages[0].content" or "input.options.systemMessage"')
    type: str = Field(description="direct, nested or array")
    field: str = ""

class StructureDetection(BaseModel):
    structure: DetectedStructure
    confidence: float = Field(ge=0, le=1)
    reasoning: str = ""

_SEGMENT = re.compile(r"([^.\[\]]+)|\[(\d+)\]")

def parse_path_string(path: str) -> List[Any]:
    """'messages[0].content' -> ['messages', 0, 'content']"""
    segments: List[Any] = []
    for name, index in _SEGMENT.findall(path or ""):
        segments.append(int(index) if index else name)
    return segments

def find_system_prompt_location(payload: Any) -> Optional[Dict[str, Any]]:
    """Heuristic lookup of the system prompt location in one logged input"""
    if isinstance(payload, list):
        for item in payload:
            if isinstance(item, dict) and item.get("role") == "system" and item.get("content"):
                return {"path": [{"role": "system"}, "content"], "type": "array", "field": "content"}
    if isinstance(payload, dict):
        messages = payload.get("messages")
        if isinstance(messages, list) and find_system_prompt_location(messages):
            return {"path": ["messages", {"role": "system"}, "content"], "type": "array", "field": "content"}
        for pattern in NESTED_PATTERNS:
            value = resolve_path(payload, pattern)
            if isinstance(value, str) and len(value) > MIN_PROMPT_LENGTH:
                return {"path": list(pattern), "type": "nested", "field": pattern[-1]}
    return None

class SystemPromptStructureDetector:
    """Heuristic detection first, LLM fallback second; never raises"""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client

    def detect(self, logs: List[ModelLog]) -> Optional[Dict[str, Any]]:
        sample = logs[:SAMPLE_SIZE]
        if not sample:
            return None

        try:
            locations = [loc for loc in (find_system_prompt_location(log.input) for log in sample) if loc]
            if len(locations) >= min(2, len(sample)):
                counts = Counter(json.dumps(loc["path"]) for loc in locations)
                best = counts.most_common(1)[0][0]
                structure = next(loc for loc in locations if json.dumps(loc["path"]) == best)
                return {**structure, "confidence": 0.9}

            if self.llm_client is None:
                return None
            return self._detect_with_llm(sample)
        except Exception:
            logger.exception("System prompt structure detection failed")
            return None

    def _detect_with_llm(self, sample: List[ModelLog]) -> Optional[Dict[str, Any]]:
        data = [{"logIndex": i, "input": log.input} for i, log in enumerate(sample)]
        messages = [
            {"role": "system", "content": DETECTION_SYSTEM_PROMPT},
            {"role": "user", "content": (
                "Analyze these input data structures and determine where system prompts are most likely located:\n\n"
                f"{json.dumps(data, indent=2, default=str)}"
            )},
        ]
        response = self.llm_client.generate(messages, response_format=StructureDetection)
        detection = response.parsed
        path = parse_path_string(detection.structure.path)
        if not path:
            return None
        return {
            "path": path,
            "type": detection.structure.type,
            "field": detection.structure.field,
            "confidence": detection.confidence,
        }
