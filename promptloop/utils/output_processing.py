"""Error detection over arbitrary logged model outputs"""
import json
from typing import Any, Optional

ERROR_KEYS = ("error", "errors")

def _maybe_json(value: Any) -> Any:
    """Parse strings that look like JSON documents, otherwise return them unchanged"""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("{", "["):
            try:
                return json.loads(stripped)
            except ValueError:
                return value
    return value

def _is_error_status(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value >= 300
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) >= 300
    return False

def output_contains_error(output: Any) -> bool:
    """
    Check whether a logged output carries an error.

    An output is an error when, at any depth, it has a `status` key >= 300
    or a truthy `error`/`errors` key. Keys are matched case-insensitively and
    JSON-encoded strings are decoded before scanning.
    """
    output = _maybe_json(output)

    if isinstance(output, list):
        return any(output_contains_error(item) for item in output)
    if not isinstance(output, dict):
        return False

    for key, value in output.items():
        lowered = str(key).lower()
        if lowered == "status" and _is_error_status(value):
            return True
        if lowered in ERROR_KEYS and value:
            return True
        if isinstance(value, (dict, list, str)) and output_contains_error(value):
            return True
    return False

def _error_text(value: Any) -> Optional[str]:
    """Human readable text for the value of an error/errors key"""
    value = _maybe_json(value)
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [_error_text(item) for item in value]
        parts = [part for part in parts if part]
        return "; ".join(parts) or None
    if isinstance(value, dict):
        for key in ("message", "detail", "description", "msg"):
            if value.get(key):
                return str(value[key])
        nested = _find_error_text(value)
        if nested:
            return nested
        return json.dumps(value, default=str)
    return str(value)

def _find_error_text(output: Any) -> Optional[str]:
    output = _maybe_json(output)
    if isinstance(output, list):
        for item in output:
            text = _find_error_text(item)
            if text:
                return text
        return None
    if not isinstance(output, dict):
        return None

    for key, value in output.items():
        if str(key).lower() in ERROR_KEYS:
            text = _error_text(value)
            if text:
                return text
    for value in output.values():
        if isinstance(value, (dict, list, str)):
            text = _find_error_text(value)
            if text:
                return text
    return None

def _find_error_status(output: Any) -> Optional[Any]:
    output = _maybe_json(output)
    if isinstance(output, list):
        for item in output:
            status = _find_error_status(item)
            if status is not None:
                return status
        return None
    if not isinstance(output, dict):
        return None

    for key, value in output.items():
        if str(key).lower() == "status" and _is_error_status(value):
            return value
    for value in output.values():
        if isinstance(value, (dict, list, str)):
            status = _find_error_status(value)
            if status is not None:
                return status
    return None

def detect_error_message(output: Any) -> str:
    """
    Extract an error message from a logged output.

    Returns '' when `output_contains_error(output)` is False. Otherwise the
    text of the first nested `error`/`errors` key, or a generic message naming
    the failing status code.
    """
    if not output_contains_error(output):
        return ""

    text = _find_error_text(output)
    if text:
        return text

    status = _find_error_status(output)
    if status is not None:
        return f"Request failed with status {status}"
    return "Unknown error"
