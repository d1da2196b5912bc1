"""Correctness classification of completed model logs"""
from typing import Any, Optional

NULLISH_VALUES = ("none", "None", "null", "NULL", "")

def _first_item(value: Any) -> Any:
    if isinstance(value, (list, tuple)) and value:
        return value[0]
    if isinstance(value, dict):
        return value.get(0, value.get("0"))
    return None

def expected_output(actual: Any) -> Optional[Any]:
    """Ground-truth class of a log"""
    if not actual:
        return None
    if isinstance(actual, dict) and actual.get("class"):
        return actual["class"]
    return "Yes" if _first_item(actual) == 1 else "No"

def predicted_output(actual: Any, predicted: Any) -> Any:
    """Class the model predicted for a log"""
    if isinstance(actual, dict) and actual.get("modelClass"):
        return actual["modelClass"]
    if predicted and _first_item(predicted) == 1:
        return "Yes"
    return "No"

def clean_object(value: Any) -> Any:
    """Recursively drop null-like entries so that absent and empty fields compare equal"""
    if not isinstance(value, dict):
        return value

    cleaned = {}
    for key, item in value.items():
        if item is None or (isinstance(item, str) and item in NULLISH_VALUES):
            continue
        if isinstance(item, dict):
            nested = clean_object(item)
            if nested:
                cleaned[key] = nested
            continue
        cleaned[key] = item
    return cleaned

def evaluate_correctness(actual: Any, predicted: Any = None, status: Optional[str] = None) -> bool:
    """
    Classify a log as correct or incorrect.

    An errored log is never correct, and neither is a log whose `actual` is
    still unknown; callers gating on correctness must check `actual` first.
    An explicit `correct` key in `actual` wins (booleans as-is, numbers
    rounded). Otherwise the expected and predicted classes are compared.
    """
    if status == "error":
        return False
    if not actual:
        return False

    if isinstance(actual, dict) and "correct" in actual:
        correct = actual["correct"]
        if isinstance(correct, bool):
            return correct
        try:
            return round(float(correct)) == 1
        except (TypeError, ValueError):
            return False

    expected = expected_output(actual)
    model_class = predicted_output(actual, predicted)

    if isinstance(expected, dict) and isinstance(model_class, dict):
        return clean_object(expected) == clean_object(model_class)
    return expected == model_class

def is_correct(log) -> bool:
    """Correctness of a ModelLog row"""
    status = log.status.value if hasattr(log.status, "value") else log.status
    return evaluate_correctness(log.actual, log.predicted, status)
