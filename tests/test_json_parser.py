"""
Tests for lenient JSON parsing of model responses.
"""

from flowcore.utils.json_parser import (
    clean_json_string,
    extract_json_from_text,
    try_parse_json,
)


class TestExtractJsonFromText:
    """Tests for extract_json_from_text."""

    def test_extracts_from_json_code_block(self):
        text = '```json\n{"key": "value"}\n```'
        result = extract_json_from_text(text)
        assert result == '{"key": "value"}'

    def test_extracts_from_plain_code_block(self):
        text = '```\n{"key": "value"}\n```'
        result = extract_json_from_text(text)
        assert result == '{"key": "value"}'

    def test_extracts_json_object_from_text(self):
        text = 'Here is the result: {"key": "value"} and some more text'
        result = extract_json_from_text(text)
        assert result == '{"key": "value"}'

    def test_extracts_json_array_from_text(self):
        text = 'Result: ["a", "b", "c"]'
        result = extract_json_from_text(text)
        assert result == '["a", "b", "c"]'

    def test_returns_original_when_no_json(self):
        text = "Just plain text"
        result = extract_json_from_text(text)
        assert result == "Just plain text"

    def test_handles_nested_braces(self):
        text = '{"outer": {"inner": "value"}}'
        result = extract_json_from_text(text)
        assert result == '{"outer": {"inner": "value"}}'


class TestCleanJsonString:
    """Tests for clean_json_string."""

    def test_removes_trailing_commas(self):
        text = '{"a": 1, "b": 2,}'
        result = clean_json_string(text)
        assert result == '{"a": 1, "b": 2}'

    def test_removes_trailing_comma_in_array(self):
        text = "[1, 2, 3,]"
        result = clean_json_string(text)
        assert result == "[1, 2, 3]"

    def test_removes_line_comments(self):
        text = '{\n  // the label\n  "a": 1\n}'
        result = clean_json_string(text)
        assert "// the label" not in result

    def test_removes_block_comments(self):
        text = '{"a": /* comment */ 1}'
        result = clean_json_string(text)
        assert "/* comment */" not in result

    def test_keeps_urls_inside_strings(self):
        """Slashes inside values are not comments."""
        text = '{"url": "https://example.com"}'
        assert clean_json_string(text) == text

    def test_keeps_apostrophes(self):
        text = '{"reply": "It\'s shipped"}'
        assert clean_json_string(text) == text


class TestTryParseJson:
    """Tests for try_parse_json."""

    def test_parses_valid_json(self):
        assert try_parse_json('{"key": "value"}') == (True, {"key": "value"})

    def test_parses_json_from_markdown(self):
        text = '```json\n{"intent": "complaint", "confidence": 0.9}\n```'
        ok, value = try_parse_json(text)
        assert ok is True
        assert value == {"intent": "complaint", "confidence": 0.9}

    def test_parses_json_with_prose(self):
        ok, value = try_parse_json('Sure! {"intent": "question"} Hope that helps.')
        assert ok is True
        assert value == {"intent": "question"}

    def test_parses_json_with_trailing_comma(self):
        ok, value = try_parse_json('```json\n{"items": [1, 2,],}\n```')
        assert ok is True
        assert value == {"items": [1, 2]}

    def test_parses_scalars(self):
        """Bare JSON scalars are JSON too."""
        assert try_parse_json("42") == (True, 42)
        assert try_parse_json('"quoted"') == (True, "quoted")

    def test_plain_text_is_not_json(self):
        assert try_parse_json("Your order ships tomorrow.") == (False, "Your order ships tomorrow.")

    def test_empty_text(self):
        assert try_parse_json("") == (False, "")
        assert try_parse_json("   ") == (False, "   ")

    def test_broken_json_returns_text(self):
        text = '{"intent": "complaint"'
        assert try_parse_json(text) == (False, text)

    def test_strict_accepts_whole_reply_or_fence(self):
        assert try_parse_json('{"a": 1}', lenient=False) == (True, {"a": 1})
        assert try_parse_json('```json\n{"a": 1}\n```', lenient=False) == (True, {"a": 1})
        assert try_parse_json('```\n[1, 2]\n```', lenient=False) == (True, [1, 2])

    def test_strict_keeps_prose_and_repairs_as_text(self):
        prose = 'Sure! {"intent": "question"} Hope that helps.'
        trailing = '{"items": [1, 2,]}'
        assert try_parse_json(prose, lenient=False) == (False, prose)
        assert try_parse_json(trailing, lenient=False) == (False, trailing)
