"""Extract named variables from a response body with JSONPath expressions."""

from typing import Any

from jsonpath_ng.ext import parse

from api_chaining.models.workflow import VariableExtraction

MAX_JSON_PATH_LENGTH = 500


class ExtractionResult:
    def __init__(self) -> None:
        self.extracted: dict[str, Any] = {}
        self.errors: list[str] = []


class PathNotFound(Exception):
    pass


def extract_variables(
    response_body: Any,
    extractions: list[VariableExtraction],
) -> ExtractionResult:
    """Evaluate every rule against *response_body*, in declaration order.

    A rule that cannot be resolved adds an error prefixed with its name and
    leaves ``extracted`` untouched; this function never raises.
    """
    result = ExtractionResult()
    if not extractions:
        return result

    if not isinstance(response_body, (dict, list)):
        for extraction in extractions:
            result.errors.append(f"{extraction.name}: response body is not a JSON object")
        return result

    for extraction in extractions:
        try:
            result.extracted[extraction.name] = _evaluate(response_body, extraction.json_path)
        except PathNotFound:
            result.errors.append(
                f"{extraction.name}: no value found at path: {extraction.json_path}"
            )
        except Exception as e:
            result.errors.append(f"{extraction.name}: failed to extract: {e}")
    return result


def _evaluate(data: Any, json_path: str) -> Any:
    if not json_path or not json_path.strip():
        raise ValueError("JSONPath expression cannot be empty")
    if len(json_path) > MAX_JSON_PATH_LENGTH:
        raise ValueError(f"JSONPath expression cannot exceed {MAX_JSON_PATH_LENGTH} characters")

    matches = [m.value for m in parse(json_path).find(data)]
    if not matches:
        raise PathNotFound(json_path)
    value = matches[0] if len(matches) == 1 else matches
    if value is None:
        raise PathNotFound(json_path)
    return value


def validate_json_path(expression: str) -> str | None:
    """Return an error message for an unusable expression, or None if it is valid."""
    if not expression or not expression.strip():
        return "JSONPath expression cannot be empty"
    if len(expression) > MAX_JSON_PATH_LENGTH:
        return f"JSONPath expression cannot exceed {MAX_JSON_PATH_LENGTH} characters"
    try:
        parse(expression)
    except Exception as e:
        return f"Invalid JSONPath: {e}"
    return None


def preview_extraction(response_body: Any, expression: str) -> tuple[Any, str | None]:
    """Try one expression against a sample body. Returns (value, error)."""
    error = validate_json_path(expression)
    if error:
        return None, error
    try:
        return _evaluate(response_body, expression), None
    except PathNotFound:
        return None, f"No value found at path: {expression}"
    except Exception as e:
        return None, f"Extraction failed: {e}"
