"""
Tests for JSON extraction from free model text.

Run with:
$ pytest -q
"""

from netcheck.core.extractor import (
    extract_json_object,
    extract_tagged_array,
    is_empty_object,
)


def test_object_surrounded_by_prose() -> None:
    """Text around the object is ignored."""

    text = 'Sure! Here you go: {"action": "final_result"} Let me know.'
    assert extract_json_object(text) == {"action": "final_result"}


def test_braces_inside_strings_do_not_unbalance() -> None:
    """A closing brace inside a string literal is not a delimiter."""

    text = 'x {"reason": "look at } and {", "tool": "t"} y'
    assert extract_json_object(text) == {"reason": "look at } and {", "tool": "t"}


def test_escaped_quote_inside_string() -> None:
    text = r'{"reason": "say \"hi\" }", "n": 1}'
    assert extract_json_object(text) == {"reason": 'say "hi" }', "n": 1}


def test_invalid_candidate_is_skipped() -> None:
    """The first balanced span that parses wins."""

    text = 'thinking {not json} then {"a": 1}'
    assert extract_json_object(text) == {"a": 1}


def test_nested_object_returns_outermost() -> None:
    assert extract_json_object('{"outer": {"inner": 1}}') == {"outer": {"inner": 1}}


def test_no_object() -> None:
    assert extract_json_object("no json here") is None
    assert extract_json_object("[1, 2]") is None
    assert extract_json_object('{"unterminated": 1') is None
    assert extract_json_object("") is None
    assert extract_json_object(None) is None


def test_tagged_array() -> None:
    text = 'Result:\n<json>[{"PullRequestNumber": 1}]</json>\nDone.'
    assert extract_tagged_array(text) == [{"PullRequestNumber": 1}]


def test_tag_is_case_insensitive_and_configurable() -> None:
    assert extract_tagged_array("<JSON>[]</JSON>") == []
    assert extract_tagged_array("<out>[1, 2]</out>", tag="out") == [1, 2]


def test_untagged_array_falls_back_to_bracket_span() -> None:
    assert extract_tagged_array("The answer is [1, 2] as requested") == [1, 2]


def test_invalid_tag_content_falls_back_to_bracket_span() -> None:
    assert extract_tagged_array("<json>oops</json> but also [3]") == [3]


def test_empty_object_is_not_an_array() -> None:
    """``{}`` is valid JSON but never an acceptable array."""

    assert extract_tagged_array("{}") is None
    assert extract_tagged_array("<json>{}</json>") is None
    assert is_empty_object(" {} ")
    assert not is_empty_object("[]")
    assert not is_empty_object(None)


def test_deeply_nested_input_is_not_found() -> None:
    """Nesting past the decoder's recursion limit counts as malformed, not as a crash."""

    deep = "[" * 5000 + "]" * 5000
    assert extract_json_object('{"a": ' + deep + "}") is None
    assert extract_tagged_array("<json>" + deep + "</json>") is None
    assert extract_tagged_array("Result: " + deep) is None
    assert is_empty_object("{" + '"a": {' * 5000 + "}" * 5001) is False
