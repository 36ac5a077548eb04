"""Tests for legacy answer-field parsing."""

from answerme.models.legacy import parse_boolean_answer, parse_correct_answers


class TestParseCorrectAnswers:
    """Test parse_correct_answers."""

    def test_json_array(self):
        """Test that a JSON array is parsed first."""
        assert parse_correct_answers('["A", " B "]') == ["A", "B"]

    def test_delimiters(self):
        """Test comma, semicolon and enumeration comma."""
        assert parse_correct_answers("A, B;C、D") == ["A", "B", "C", "D"]

    def test_broken_json_falls_back_to_split(self):
        """Test that unparseable JSON is split like plain text."""
        assert parse_correct_answers('["A", "B"') == ['["A"', '"B"']

    def test_empty(self):
        """Test empty input."""
        assert parse_correct_answers(None) == []
        assert parse_correct_answers("   ") == []


class TestParseBooleanAnswer:
    """Test parse_boolean_answer."""

    def test_english_and_chinese(self):
        """Test the recognised words."""
        assert parse_boolean_answer(" TRUE ") is True
        assert parse_boolean_answer("正确") is True
        assert parse_boolean_answer("错") is False

    def test_other_text_is_none(self):
        """Test that anything else is not a boolean."""
        assert parse_boolean_answer("yes") is None
        assert parse_boolean_answer(None) is None
