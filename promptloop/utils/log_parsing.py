"""Helpers for pulling prompts and content out of logged model payloads"""
import json
from typing import Any, Dict, List, Optional

INPUT_CONTENT_KEYS = ("input", "query", "question", "text", "message", "content", "userMessage")
OUTPUT_CONTENT_KEYS = ("output", "text", "content", "response", "result", "answer", "message")

def _as_text(content: Any) -> Optional[str]:
    """Flatten chat content (string or list of content parts) into a string"""
    if content is None:
        return None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "\n".join(parts) if parts else None
    return json.dumps(content, default=str)

def _messages(payload: Any) -> Optional[List[Dict]]:
    if isinstance(payload, list) and payload and all(isinstance(m, dict) for m in payload):
        if any("role" in m for m in payload):
            return payload
    if isinstance(payload, dict):
        for key in ("messages", "input"):
            candidate = payload.get(key)
            if isinstance(candidate, list):
                found = _messages(candidate)
                if found:
                    return found
    return None

def resolve_path(payload: Any, path: List[Any]) -> Any:
    """
    Walk a detected structure path through a payload.

    Path segments are dict keys, list indices, or a {"role": "..."} matcher
    selecting the first message with that role.
    """
    current = payload
    for segment in path:
        if current is None:
            return None
        if isinstance(segment, dict):
            if not isinstance(current, list):
                return None
            current = next(
                (item for item in current if isinstance(item, dict)
                 and all(item.get(k) == v for k, v in segment.items())),
                None,
            )
        elif isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(segment)
    return current

def parse_context(payload: Any, structure: Optional[Dict] = None) -> Optional[str]:
    """Extract the system prompt (context) from a logged input"""
    if structure and structure.get("path"):
        found = _as_text(resolve_path(payload, structure["path"]))
        if found:
            return found

    messages = _messages(payload)
    if messages:
        for message in messages:
            if message.get("role") == "system":
                return _as_text(message.get("content"))

    if isinstance(payload, dict):
        options = payload.get("options") if isinstance(payload.get("options"), dict) else {}
        nested_input = payload.get("input") if isinstance(payload.get("input"), dict) else {}
        nested_options = nested_input.get("options") if isinstance(nested_input.get("options"), dict) else {}
        for candidate in (
            nested_options.get("systemMessage"),
            payload.get("systemMessage"),
            options.get("systemMessage"),
            payload.get("prompt"),
            payload.get("system"),
        ):
            text = _as_text(candidate)
            if text:
                return text
    return None

def parse_system_prompt(payload: Any, structure: Optional[Dict] = None) -> Optional[str]:
    """System prompt of a logged input, stripped; None when absent or blank"""
    prompt = parse_context(payload, structure)
    if prompt is None:
        return None
    prompt = prompt.strip()
    return prompt or None

def parse_input_content(payload: Any) -> str:
    """Extract the user-facing content of a logged input"""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    messages = _messages(payload)
    if messages:
        user_messages = [m for m in messages if m.get("role") == "user"]
        if user_messages:
            return _as_text(user_messages[-1].get("content")) or ""

    if isinstance(payload, dict):
        for key in INPUT_CONTENT_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
        nested = payload.get("input")
        if isinstance(nested, dict):
            return parse_input_content(nested)
    return json.dumps(payload, default=str)

def parse_output_content(payload: Any) -> str:
    """Extract the generated content of a logged output"""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    if isinstance(payload, dict):
        choices = payload.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0] if isinstance(choices[0], dict) else {}
            message = first.get("message") or {}
            content = _as_text(message.get("content"))
            if content:
                return content
            tool_calls = message.get("tool_calls") or []
            if tool_calls:
                function = tool_calls[0].get("function") or {}
                if function.get("arguments"):
                    return str(function["arguments"])
            if isinstance(first.get("text"), str):
                return first["text"]
        for key in OUTPUT_CONTENT_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and key == "message":
                content = _as_text(value.get("content"))
                if content:
                    return content
    return json.dumps(payload, default=str)
