"""Tests for JSONL parsing helpers."""

from agentdesk.utils.jsonl_parser import parse_jsonl_line, parse_jsonl


class TestParseJsonlLine:
    """SUT: parse_jsonl_line"""

    def test_object(self):
        assert parse_jsonl_line('{"type": "user"}') == {"type": "user"}

    def test_surrounding_whitespace(self):
        assert parse_jsonl_line('  {"a": 1}\r\n') == {"a": 1}

    def test_blank_line(self):
        assert parse_jsonl_line("   ") is None

    def test_invalid_json(self):
        assert parse_jsonl_line('{"type": ') is None

    def test_non_object(self):
        """Arrays and scalars are not records."""
        assert parse_jsonl_line("[1, 2]") is None
        assert parse_jsonl_line("42") is None


class TestParseJsonl:
    """SUT: parse_jsonl"""

    def test_skips_bad_lines(self):
        text = '{"n": 1}\nnot json\n\n{"n": 2}\n'
        assert parse_jsonl(text) == [{"n": 1}, {"n": 2}]

    def test_empty(self):
        assert parse_jsonl("") == []
