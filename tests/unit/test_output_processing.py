"""Unit tests for output_processing.py"""
import json
import pytest
from promptloop.utils.output_processing import output_contains_error, detect_error_message

class TestOutputContainsError:
    """Tests for error detection in logged outputs"""

    @pytest.mark.parametrize("output", [
        {"status": 500},
        {"Status": "404"},
        {"response": {"status": 302}},
        {"error": "boom"},
        {"data": {"ERRORS": [{"message": "bad"}]}},
        [{"ok": True}, {"error": {"message": "late"}}],
        json.dumps({"error": "encoded"}),
    ])
    def test_error_outputs(self, output):
        """Test outputs carrying an error status or error key"""
        assert output_contains_error(output) is True

    @pytest.mark.parametrize("output", [
        {"status": 200},
        {"status": True},
        {"error": None},
        {"errors": []},
        "The order ships tomorrow",
        None,
        {"choices": [{"message": {"content": "fine"}}]},
    ])
    def test_healthy_outputs(self, output):
        """Test outputs without errors"""
        assert output_contains_error(output) is False

class TestDetectErrorMessage:
    """Tests for error message extraction"""

    def test_empty_when_no_error(self):
        """Test the message is empty whenever no error is detected"""
        for output in ({"status": 200}, "all good", {"error": ""}):
            assert output_contains_error(output) is False
            assert detect_error_message(output) == ""

    def test_nested_error_message(self):
        """Test message field of a nested error object"""
        output = {"result": {"meta": {"error": {"message": "Rate limited", "code": 429}}}}
        assert detect_error_message(output) == "Rate limited"

    def test_error_list(self):
        """Test error lists are joined"""
        assert detect_error_message({"errors": ["timeout", {"detail": "upstream"}]}) == "timeout; upstream"

    def test_status_only(self):
        """Test status codes without error text"""
        assert detect_error_message({"status": 503}) == "Request failed with status 503"

    def test_error_object_without_message(self):
        """Test error objects without a message field are serialized"""
        assert detect_error_message({"error": {"code": 42}}) == '{"code": 42}'

    def test_json_encoded_output(self):
        """Test JSON strings are decoded before extraction"""
        assert detect_error_message(json.dumps({"error": "invalid key"})) == "invalid key"
