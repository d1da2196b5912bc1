"""Unit tests for correctness_evaluator.py"""
import pytest
from promptloop.services.correctness_evaluator import (
    evaluate_correctness, expected_output, predicted_output, clean_object
)

class TestEvaluateCorrectness:
    """Tests for the correct/incorrect classification of a log"""

    def test_error_status_is_never_correct(self):
        """Test an errored log is incorrect even with a passing actual"""
        assert evaluate_correctness({"correct": True}, status="error") is False

    def test_unknown_actual_is_not_correct(self):
        """Test a log without ground truth is not classified correct"""
        assert evaluate_correctness(None) is False
        assert evaluate_correctness({}) is False

    def test_explicit_boolean_correct_key(self):
        """Test an explicit boolean `correct` key wins"""
        assert evaluate_correctness({"correct": True}) is True
        assert evaluate_correctness({"correct": False, "class": "Yes"}, predicted=[1]) is False

    @pytest.mark.parametrize("value,expected", [(1, True), (0.6, True), (0.4, False), (0, False), ("1", True), ("n/a", False)])
    def test_numeric_correct_key_is_rounded(self, value, expected):
        """Test numeric `correct` values are rounded to 0/1"""
        assert evaluate_correctness({"correct": value}) is expected

    def test_class_comparison(self):
        """Test expected class vs predicted class"""
        assert evaluate_correctness({"class": "Yes"}, predicted=[1]) is True
        assert evaluate_correctness([1], predicted=[0]) is False
        assert evaluate_correctness([0], predicted=[0]) is True

    def test_structured_classes_ignore_null_fields(self):
        """Test dict classes compare equal once null-like fields are dropped"""
        actual = {
            "class": {"intent": "refund", "order": None},
            "modelClass": {"intent": "refund", "order": "null"},
        }
        assert evaluate_correctness(actual) is True

class TestClassHelpers:
    """Tests for expected/predicted class helpers"""

    def test_expected_output(self):
        """Test expected class extraction"""
        assert expected_output({"class": "Billing"}) == "Billing"
        assert expected_output([1]) == "Yes"
        assert expected_output([0]) == "No"
        assert expected_output(None) is None

    def test_predicted_output_prefers_model_class(self):
        """Test modelClass in actual overrides the predicted column"""
        assert predicted_output({"modelClass": "Billing"}, [1]) == "Billing"
        assert predicted_output({}, [1]) == "Yes"
        assert predicted_output({}, None) == "No"

    def test_clean_object_drops_empty_nested(self):
        """Test nested dicts left empty after cleaning are dropped"""
        assert clean_object({"a": 1, "b": {"c": None}, "d": ""}) == {"a": 1}
        assert clean_object("plain") == "plain"
