"""Built-in deterministic (function-type) evaluators"""
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

@dataclass
class EvaluationContext:
    """Everything a function evaluator may look at for one log"""
    log_input: Any
    log_output: Any
    parsed_output: str
    user_content: str
    context: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def option(self, name: str, default=None):
        """Evaluator option from the evaluator parameters, falling back to the log input"""
        if self.parameters.get(name) not in (None, "", []):
            return self.parameters[name]
        if isinstance(self.log_input, dict) and self.log_input.get(name) not in (None, "", []):
            return self.log_input[name]
        return default

def _result(score: float, analysis: str, errors: List[str] = None) -> Dict[str, Any]:
    return {"score": score, "analysis": analysis, "errors": errors or []}

def exact_match(ctx: EvaluationContext) -> Dict[str, Any]:
    expected = ctx.option("expectedOutput")
    if not expected:
        return _result(0, "No expected output provided for comparison", ["Missing expected output in context or input"])
    if ctx.parsed_output == expected:
        return _result(10, "Output exactly matches expected result")
    return _result(0, "Output does not match expected result", [f'Expected: "{expected}", Got: "{ctx.parsed_output}"'])

def contains_text(ctx: EvaluationContext) -> Dict[str, Any]:
    required = ctx.option("requiredText")
    if not required:
        return _result(0, "No required text specified for evaluation", ["Missing required text in context or input"])
    if required.lower() in ctx.parsed_output.lower():
        return _result(10, "Output contains the required text")
    return _result(0, "Output does not contain the required text", [f'Required text "{required}" not found in output'])

def json_structure(ctx: EvaluationContext) -> Dict[str, Any]:
    required_fields = ctx.option("requiredFields", [])
    if not required_fields:
        return _result(0, "No required fields specified for JSON evaluation", ["Missing required fields in context or input"])
    try:
        parsed = json.loads(ctx.parsed_output)
    except ValueError as e:
        return _result(0, "Output is not valid JSON", ["Invalid JSON format", str(e)])
    if not isinstance(parsed, dict):
        return _result(0, "Output is not a JSON object", ["Expected a JSON object"])

    missing = [name for name in required_fields if name not in parsed]
    if not missing:
        return _result(10, "All required fields are present in JSON")
    score = max(0, 10 - len(missing) * 2)
    return _result(score, "Some required fields are missing from JSON", [f"Missing fields: {', '.join(missing)}"])

def length_check(ctx: EvaluationContext) -> Dict[str, Any]:
    min_length = ctx.option("minLength", 0) or 0
    max_length = ctx.option("maxLength", math.inf) or math.inf
    length = len(ctx.parsed_output)

    if min_length <= length <= max_length:
        return _result(10, "Output length is within acceptable range")
    if length < min_length:
        score = max(0, 10 - (min_length - length) * 2)
    else:
        score = max(0, 10 - (length - max_length) * 0.5)
    return _result(score, "Output length is outside acceptable range", [f"Length {length} is outside range [{min_length}, {max_length}]"])

def regex_pattern(ctx: EvaluationContext) -> Dict[str, Any]:
    pattern = ctx.option("pattern")
    if not pattern:
        return _result(0, "No regex pattern specified for evaluation", ["Missing regex pattern in context or input"])
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        return _result(0, "Invalid regex pattern provided", ["Invalid regex pattern", str(e)])
    if compiled.search(ctx.parsed_output):
        return _result(10, "Output matches the required pattern")
    return _result(0, "Output does not match the required pattern", [f"Output does not match pattern: {pattern}"])

def count_tokens(text: str) -> int:
    """Approximate token count (1 token is roughly 0.75 words)"""
    if not text:
        return 0
    words = text.split()
    return math.ceil(len(words) / 0.75)

def token_calculation(ctx: EvaluationContext) -> Dict[str, Any]:
    """Informative evaluator: reports token usage, never gates correctness"""
    input_tokens = count_tokens(ctx.user_content) + count_tokens(ctx.context or "")
    output_tokens = count_tokens(ctx.parsed_output)
    total = input_tokens + output_tokens
    return {
        "score": 10,
        "analysis": f"Input tokens: {input_tokens}, output tokens: {output_tokens}, total: {total}",
        "errors": [],
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": total,
    }

FUNCTION_EVALUATORS: Dict[str, Callable[[EvaluationContext], Dict[str, Any]]] = {
    "exact_match": exact_match,
    "contains_text": contains_text,
    "json_structure": json_structure,
    "length_check": length_check,
    "regex_pattern": regex_pattern,
    "token_calculation": token_calculation,
}

def get_function_evaluator(name: str) -> Callable[[EvaluationContext], Dict[str, Any]]:
    try:
        return FUNCTION_EVALUATORS[name]
    except KeyError:
        raise ValueError(f"Unknown function evaluator: {name}")
