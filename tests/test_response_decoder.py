"""Tests for decoding model JSON output."""

from culinai.services.response_decoder import decode_model_json, repair_truncated_array, strip_code_fences


def test_decode_fenced_json():
    """Test ```json fences are stripped."""
    assert decode_model_json("```json\n[1,2,3]\n```") == [1, 2, 3]


def test_decode_bare_fence():
    """Test bare ``` fences are stripped."""
    assert decode_model_json('```\n{"a": 1}\n```') == {"a": 1}


def test_decode_truncated_array_is_repaired():
    """Test a missing closing bracket is appended."""
    assert decode_model_json("[1,2,3") == [1, 2, 3]


def test_decode_truncated_array_with_trailing_comma():
    """Test a dangling comma before the missing bracket is dropped."""
    assert decode_model_json('[{"title": "Soup"},') == [{"title": "Soup"}]


def test_decode_not_json_returns_empty_list():
    """Test unparseable text degrades to an empty list."""
    assert decode_model_json("not json") == []


def test_decode_truncated_mid_object_returns_empty_list():
    """Test truncation inside an object is not repaired."""
    assert decode_model_json('[{"title": "Sou') == []


def test_decode_empty_and_none():
    """Test empty input."""
    assert decode_model_json("") == []
    assert decode_model_json(None) == []


def test_strip_code_fences_trims_whitespace():
    assert strip_code_fences("  \n```JSON\n[]\n```  \n") == "[]"


def test_repair_leaves_objects_alone():
    assert repair_truncated_array('{"a": 1') == '{"a": 1'
    assert repair_truncated_array("[1]") == "[1]"
