"""Variable substitution with context-aware encoding.

``{{name}}`` placeholders are replaced by the value of ``name`` in the
variable scope, encoded for where the result ends up:

- ``url`` / ``query`` → full percent-encoding of the value.
- ``header`` → CR and LF stripped, so a value cannot start a new header.
- ``body`` → raw insertion, so numbers stay numbers inside JSON text.

Placeholders whose name is not in scope are left as-is.
"""

import json
import re
from enum import Enum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel

from api_chaining.models.workflow import WorkflowStep

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# Characters encodeURIComponent leaves alone, on top of letters and digits
_URI_COMPONENT_SAFE = "-_.!~*'()"


class SubstitutionContext(str, Enum):
    URL = "url"
    HEADER = "header"
    QUERY = "query"
    BODY = "body"


def substitute(
    template: str,
    variables: dict[str, Any],
    context: SubstitutionContext | str,
) -> str:
    if not template:
        return template
    context = SubstitutionContext(context)

    def _replacer(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return _encode(stringify(variables[name]), context)

    return VARIABLE_PATTERN.sub(_replacer, template)


def stringify(value: Any) -> str:
    """Render a scope value as text, JSON-style for non-strings."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _encode(value: str, context: SubstitutionContext) -> str:
    if context in (SubstitutionContext.URL, SubstitutionContext.QUERY):
        return quote(value, safe=_URI_COMPONENT_SAFE)
    if context == SubstitutionContext.HEADER:
        return value.replace("\r", "").replace("\n", "")
    return value


def extract_variable_references(template: str) -> list[str]:
    """Return the unique placeholder names in *template*, in order of appearance."""
    return list(dict.fromkeys(VARIABLE_PATTERN.findall(template or "")))


def validate_variable_references(template: str, scope: list[str] | set[str]) -> list[str]:
    """Return the placeholder names in *template* that are not in *scope*."""
    known = set(scope)
    return [name for name in extract_variable_references(template) if name not in known]


class AvailableVariable(BaseModel):
    name: str
    step_name: str
    step_id: str


def available_variables(steps: list[WorkflowStep], before_index: int) -> list[AvailableVariable]:
    """Variables extracted by the steps that run before position *before_index*."""
    ordered = sorted(steps, key=lambda s: s.order)
    result: list[AvailableVariable] = []
    for step in ordered[: max(before_index, 0)]:
        for extraction in step.extractions:
            result.append(
                AvailableVariable(name=extraction.name, step_name=step.name, step_id=step.id)
            )
    return result


def unresolved_references(templates: list[str], variables: dict[str, Any]) -> list[str]:
    """Placeholder names across *templates* that *variables* cannot resolve."""
    missing: dict[str, None] = {}
    for template in templates:
        for name in validate_variable_references(template, variables.keys()):
            missing[name] = None
    return list(missing)
