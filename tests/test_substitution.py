import pytest

from api_chaining.models.workflow import VariableExtraction, WorkflowRequest, WorkflowStep
from api_chaining.utils.substitution import (
    available_variables,
    extract_variable_references,
    stringify,
    substitute,
    validate_variable_references,
)


class TestSubstitute:
    def test_url_value(self):
        assert substitute("{{x}}/items", {"x": "42"}, "url") == "42/items"

    def test_missing_left_literal(self):
        assert substitute("{{missing}}", {}, "url") == "{{missing}}"

    def test_missing_embedded_left_literal(self):
        assert substitute("/users/{{id}}/posts/{{post}}", {"id": "7"}, "url") == "/users/7/posts/{{post}}"

    def test_url_encodes_reserved_characters(self):
        assert substitute("/files/{{name}}", {"name": "a/b c?"}, "url") == "/files/a%2Fb%20c%3F"

    def test_url_keeps_unreserved_marks(self):
        assert substitute("{{v}}", {"v": "a-b_c.d!e~f*g'h(i)"}, "url") == "a-b_c.d!e~f*g'h(i)"

    def test_query_encodes(self):
        assert substitute("{{q}}", {"q": "a b&c=d"}, "query") == "a%20b%26c%3Dd"

    def test_header_strips_newlines(self):
        result = substitute("Bearer {{t}}", {"t": "abc\r\nX-Injected: 1"}, "header")
        assert result == "Bearer abcX-Injected: 1"

    def test_header_keeps_other_characters(self):
        assert substitute("{{t}}", {"t": "a b/c"}, "header") == "a b/c"

    def test_body_raw_insertion(self):
        assert substitute('{"id": {{n}}, "q": "{{s}}"}', {"n": 5, "s": "a b"}, "body") == '{"id": 5, "q": "a b"}'

    def test_empty_template(self):
        assert substitute("", {"x": "1"}, "body") == ""

    def test_no_placeholders(self):
        assert substitute("/static/path", {"x": "1"}, "url") == "/static/path"

    def test_same_variable_twice(self):
        assert substitute("{{a}}-{{a}}", {"a": "x"}, "body") == "x-x"

    def test_unknown_context_rejected(self):
        with pytest.raises(ValueError):
            substitute("{{a}}", {"a": "x"}, "cookie")

    def test_deterministic(self):
        scope = {"a": "1 2"}
        assert substitute("{{a}}", scope, "url") == substitute("{{a}}", scope, "url")
        assert scope == {"a": "1 2"}


class TestStringify:
    def test_bool(self):
        assert stringify(True) == "true"
        assert stringify(False) == "false"

    def test_none(self):
        assert stringify(None) == "null"

    def test_number(self):
        assert stringify(42) == "42"

    def test_json_values(self):
        assert stringify({"a": [1, 2]}) == '{"a":[1,2]}'


class TestReferences:
    def test_extract_unique_in_order(self):
        assert extract_variable_references("{{b}} {{a}} {{b}}") == ["b", "a"]

    def test_extract_none(self):
        assert extract_variable_references("literal") == []

    def test_validate_reports_missing(self):
        assert validate_variable_references("{{a}}/{{b}}", ["a"]) == ["b"]

    def test_available_variables_only_from_earlier_steps(self):
        steps = [
            WorkflowStep(
                id="s2", order=1, name="Second", request=WorkflowRequest(),
                extractions=[VariableExtraction(id="e2", name="orderId", json_path="$.id")],
            ),
            WorkflowStep(
                id="s1", order=0, name="First", request=WorkflowRequest(),
                extractions=[VariableExtraction(id="e1", name="token", json_path="$.token")],
            ),
        ]
        names = [v.name for v in available_variables(steps, 1)]
        assert names == ["token"]
        assert [v.step_id for v in available_variables(steps, 2)] == ["s1", "s2"]
        assert available_variables(steps, 0) == []
