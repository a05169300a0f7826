"""
Tests — Recovery parser for LLM output.

Covers:
    - fenced code blocks (tagged / untagged, first block only)
    - prose noise around bare JSON
    - trailing commas and comments
    - brackets and comment markers inside string literals
    - widest-region second attempt
    - ParseError preview and cause
"""

import json

import pytest

from briefsmith.ai.parser import (
    drop_trailing_commas,
    find_balanced_span,
    parse_llm_json,
    strip_comments,
)
from briefsmith.core.exceptions import ParseError


class TestFencedBlocks:

    def test_fenced_json_round_trips(self):
        value = {"name": "Shop", "features": ["cart", "checkout"], "budget": {"amount": 5}}
        text = f"Here is the analysis:\n```json\n{json.dumps(value, indent=2)}\n```\nLet me know!"
        assert parse_llm_json(text) == value

    def test_untagged_fence(self):
        assert parse_llm_json("```\n{\"a\": 1}\n```") == {"a": 1}

    def test_uppercase_tag(self):
        assert parse_llm_json("```JSON\n[1, 2]\n```") == [1, 2]

    def test_only_first_fenced_block_used(self):
        text = "```json\n{\"first\": true}\n```\nand\n```json\n{\"second\": true}\n```"
        assert parse_llm_json(text) == {"first": True}


class TestNoiseTolerance:

    def test_prose_before_and_after(self):
        text = 'Sure! The result is {"complexity": "high", "teamSize": 4} as requested.'
        assert parse_llm_json(text) == {"complexity": "high", "teamSize": 4}

    def test_top_level_array(self):
        assert parse_llm_json("Patterns: [\"MVC\", \"CQRS\"] done") == ["MVC", "CQRS"]

    def test_trailing_commas_removed(self):
        text = '{"a": [1, 2, 3,], "b": {"c": 1,},}'
        assert parse_llm_json(text) == {"a": [1, 2, 3], "b": {"c": 1}}

    def test_line_and_block_comments_removed(self):
        text = '{\n  // team size\n  "teamSize": 3, /* rough */\n  "weeks": 12\n}'
        assert parse_llm_json(text) == {"teamSize": 3, "weeks": 12}

    def test_mixed_nesting(self):
        text = 'x {"a": [{"b": [1, {"c": []}]}], "d": {}} trailing ] } noise'
        assert parse_llm_json(text) == {"a": [{"b": [1, {"c": []}]}], "d": {}}


class TestStringSafety:

    def test_brackets_inside_strings_do_not_affect_depth(self):
        text = 'Result: {"note": "use } and ] and { freely", "n": 1} -- end }'
        assert parse_llm_json(text) == {"note": "use } and ] and { freely", "n": 1}

    def test_escaped_quote_inside_string(self):
        text = r'{"quote": "she said \"hi }\" twice", "ok": true}'
        assert parse_llm_json(text) == {"quote": 'she said "hi }" twice', "ok": True}

    def test_urls_survive_comment_stripping(self):
        text = '{"docs": "https://example.com/api", "n": 2}'
        assert parse_llm_json(text) == {"docs": "https://example.com/api", "n": 2}

    def test_strip_comments_keeps_string_contents(self):
        assert strip_comments('{"a": "/* x */"} // y') == '{"a": "/* x */"} '

    def test_commas_inside_strings_are_kept(self):
        assert parse_llm_json('{"s": "a, }", "t": ["b, ]",],}') == {"s": "a, }", "t": ["b, ]"]}

    def test_drop_trailing_commas_skips_escaped_quotes(self):
        text = r'{"q": "x \", }", "n": [1,]}'
        assert drop_trailing_commas(text) == r'{"q": "x \", }", "n": [1]}'


class TestSecondAttempt:

    def test_widest_region_used_when_first_candidate_fails(self):
        text = "```\nnot json at all\n```\nActual: {\"a\": 1, \"b\": 2}"
        assert parse_llm_json(text) == {"a": 1, "b": 2}


class TestParseErrors:

    def test_no_json_raises(self):
        with pytest.raises(ParseError) as exc_info:
            parse_llm_json("I could not produce an answer for that.")
        assert exc_info.value.cause is not None
        assert "Failed to parse JSON response" in str(exc_info.value)

    def test_empty_input_raises(self):
        with pytest.raises(ParseError):
            parse_llm_json("   ")

    def test_preview_is_first_200_chars(self):
        text = "x" * 500
        with pytest.raises(ParseError) as exc_info:
            parse_llm_json(text)
        assert exc_info.value.preview == "x" * 200

    def test_unbalanced_json_raises(self):
        with pytest.raises(ParseError):
            parse_llm_json('{"a": [1, 2')


class TestFindBalancedSpan:

    def test_returns_slice_bounds(self):
        text = 'ab {"x": [1]} cd'
        start, end = find_balanced_span(text)
        assert text[start:end] == '{"x": [1]}'

    def test_none_without_opening_bracket(self):
        assert find_balanced_span("plain text") is None

    def test_none_when_never_balanced(self):
        assert find_balanced_span('{"a": {"b": 1}') is None
