from api_chaining.executor.extraction import (
    extract_variables,
    preview_extraction,
    validate_json_path,
)
from api_chaining.models.workflow import VariableExtraction


def _rule(name, path):
    return VariableExtraction(id=f"e-{name}", name=name, json_path=path)


def test_simple_property():
    result = extract_variables({"id": "42"}, [_rule("userId", "id")])
    assert result.extracted == {"userId": "42"}
    assert result.errors == []


def test_missing_path_reports_error():
    result = extract_variables({}, [_rule("x", "missing.path")])
    assert result.extracted == {}
    assert len(result.errors) == 1
    assert result.errors[0].startswith("x: ")


def test_dollar_prefixed_path():
    result = extract_variables({"access_token": "jwt123"}, [_rule("token", "$.access_token")])
    assert result.extracted == {"token": "jwt123"}


def test_nested_and_index():
    body = {"data": {"items": [{"id": 1}, {"id": 2}]}}
    result = extract_variables(body, [_rule("second", "$.data.items[1].id")])
    assert result.extracted == {"second": 2}


def test_index_out_of_range():
    body = {"items": [{"id": 1}]}
    result = extract_variables(body, [_rule("x", "$.items[5].id")])
    assert result.extracted == {}
    assert result.errors[0].startswith("x: ")


def test_top_level_list_body():
    result = extract_variables([{"id": "a"}], [_rule("first", "$[0].id")])
    assert result.extracted == {"first": "a"}


def test_wildcard_returns_list():
    body = {"items": [{"id": 1}, {"id": 2}]}
    result = extract_variables(body, [_rule("ids", "$.items[*].id")])
    assert result.extracted == {"ids": [1, 2]}


def test_object_value_extracted_whole():
    body = {"user": {"name": "Ada", "roles": ["admin"]}}
    result = extract_variables(body, [_rule("user", "$.user")])
    assert result.extracted == {"user": {"name": "Ada", "roles": ["admin"]}}


def test_null_value_is_an_error():
    result = extract_variables({"id": None}, [_rule("x", "$.id")])
    assert result.extracted == {}
    assert result.errors[0].startswith("x: ")


def test_non_object_body():
    result = extract_variables("plain text", [_rule("a", "$.id"), _rule("b", "$.name")])
    assert result.extracted == {}
    assert result.errors == [
        "a: response body is not a JSON object",
        "b: response body is not a JSON object",
    ]


def test_unparseable_expression_does_not_raise():
    result = extract_variables({"a": 1}, [_rule("bad", "$.[[[")])
    assert result.extracted == {}
    assert result.errors[0].startswith("bad: ")


def test_partial_success_keeps_good_rules():
    body = {"id": 7, "name": "n"}
    result = extract_variables(body, [_rule("id", "$.id"), _rule("gone", "$.nope"), _rule("name", "$.name")])
    assert result.extracted == {"id": 7, "name": "n"}
    assert len(result.errors) == 1
    assert result.errors[0].startswith("gone: ")


def test_rules_cannot_see_earlier_outputs():
    result = extract_variables({"id": 1}, [_rule("first", "$.id"), _rule("second", "$.first")])
    assert result.extracted == {"first": 1}
    assert result.errors[0].startswith("second: ")


def test_no_rules():
    result = extract_variables({"id": 1}, [])
    assert result.extracted == {}
    assert result.errors == []


def test_filter_expression():
    body = {"items": [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]}
    result = extract_variables(body, [_rule("n", "$.items[?(@.id == 2)].name")])
    assert result.extracted == {"n": "b"}
    assert result.errors == []


class TestValidateJsonPath:
    def test_valid(self):
        assert validate_json_path("$.data.items[0].id") is None

    def test_filter_is_valid(self):
        assert validate_json_path("$.items[?(@.id == 2)].name") is None

    def test_empty(self):
        assert validate_json_path("  ") == "JSONPath expression cannot be empty"

    def test_too_long(self):
        assert "500" in validate_json_path("a" * 501)

    def test_unparseable(self):
        assert validate_json_path("$.[[[").startswith("Invalid JSONPath")


class TestPreview:
    def test_value(self):
        assert preview_extraction({"a": {"b": 3}}, "$.a.b") == (3, None)

    def test_no_value(self):
        value, error = preview_extraction({"a": 1}, "$.b")
        assert value is None
        assert error == "No value found at path: $.b"

    def test_invalid_expression(self):
        value, error = preview_extraction({"a": 1}, "")
        assert value is None
        assert error == "JSONPath expression cannot be empty"
