"""Workflow export/import.

Exports carry only the portable fields of a workflow (no id, no timestamps) so
they can be imported again as a new workflow. Imports are validated against an
allow-list: required fields must be present and well-formed, optional fields
are coerced or defaulted, and any key not listed here is dropped.
"""

import json
import math
import uuid
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from api_chaining.models.workflow import (
    AuthType,
    HttpMethod,
    SpecEndpoint,
    VariableExtraction,
    WorkflowAuth,
    WorkflowDefinition,
    WorkflowRequest,
    WorkflowStep,
)
from api_chaining.utils.exceptions import WorkflowImportError

VALID_METHODS = {m.value for m in HttpMethod}
VALID_AUTH_TYPES = {t.value for t in AuthType}
_AUTH_FIELDS = {"token": "token", "apiKey": "api_key", "username": "username", "password": "password"}


class ImportSuccess(BaseModel):
    kind: Literal["ok"] = "ok"
    workflow: WorkflowDefinition


class ImportFailure(BaseModel):
    kind: Literal["error"] = "error"
    field: str
    reason: str
    step_index: int | None = None

    def to_exception(self) -> WorkflowImportError:
        return WorkflowImportError(self.field, self.reason, self.step_index)


ImportResult = Annotated[
    ImportSuccess | ImportFailure,
    Field(discriminator="kind"),
]


def export_workflow(workflow: WorkflowDefinition) -> str:
    exportable = WorkflowDefinition(
        name=workflow.name,
        description=workflow.description,
        server_url=workflow.server_url,
        shared_auth=workflow.shared_auth,
        steps=workflow.steps,
    )
    data = exportable.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2)


def import_workflow(text: str) -> WorkflowDefinition:
    """Parse and validate exported workflow text. Raises WorkflowImportError."""
    result = parse_workflow(text)
    if isinstance(result, ImportFailure):
        raise result.to_exception()
    return result.workflow


def parse_workflow(text: str) -> ImportResult:
    try:
        return ImportSuccess(workflow=_build_definition(text))
    except WorkflowImportError as e:
        return ImportFailure(field=e.field, reason=e.reason, step_index=e.step_index)


def _build_definition(text: str) -> WorkflowDefinition:
    try:
        raw = json.loads(text)
    except (TypeError, ValueError, RecursionError):
        raise WorkflowImportError("document", "could not be parsed as JSON")

    if not isinstance(raw, dict):
        raise WorkflowImportError("document", "must be an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise WorkflowImportError("name", "is missing or empty")
    server_url = raw.get("serverUrl")
    if not isinstance(server_url, str) or not server_url.strip():
        raise WorkflowImportError("serverUrl", "is missing or empty")
    steps = raw.get("steps")
    if not isinstance(steps, list):
        raise WorkflowImportError("steps", "must be a list")

    description = raw.get("description")
    shared_auth = raw.get("sharedAuth")
    return WorkflowDefinition(
        name=name.strip(),
        description=description if isinstance(description, str) else None,
        server_url=server_url.strip(),
        shared_auth=_validate_auth(shared_auth) if isinstance(shared_auth, dict) else None,
        steps=[_validate_step(s, i) for i, s in enumerate(steps)],
    )


def _validate_step(raw: Any, index: int) -> WorkflowStep:
    if not isinstance(raw, dict):
        raise WorkflowImportError("step", "must be an object", index)

    step_id = raw.get("id")
    name = raw.get("name")
    extractions = raw.get("extractions")
    spec_endpoint = raw.get("specEndpoint")
    return WorkflowStep(
        id=step_id if isinstance(step_id, str) and step_id else str(uuid.uuid4()),
        order=_coerce_order(raw.get("order"), index),
        name=name if isinstance(name, str) else f"Step {index + 1}",
        request=_validate_request(raw.get("request"), index),
        extractions=[
            _to_extraction(e) for e in extractions if _is_valid_extraction(e)
        ] if isinstance(extractions, list) else [],
        spec_endpoint=_to_spec_endpoint(spec_endpoint) if isinstance(spec_endpoint, dict) else None,
    )


def _coerce_order(value: Any, index: int) -> int:
    if isinstance(value, bool):
        return index
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return index


def _validate_request(raw: Any, index: int) -> WorkflowRequest:
    if not isinstance(raw, dict):
        raise WorkflowImportError("request", "must be an object", index)

    method = str(raw.get("method") or "GET").upper()
    if method not in VALID_METHODS:
        raise WorkflowImportError("request.method", f"'{method}' is not an allowed method", index)

    path = raw.get("path")
    body = raw.get("body")
    auth = raw.get("auth")
    return WorkflowRequest(
        method=HttpMethod(method),
        path=path if isinstance(path, str) else "/",
        headers=raw["headers"] if _is_string_map(raw.get("headers")) else {},
        query_params=raw["queryParams"] if _is_string_map(raw.get("queryParams")) else {},
        body=body if isinstance(body, str) else None,
        auth=_validate_auth(auth) if isinstance(auth, dict) else None,
    )


def _validate_auth(raw: dict) -> WorkflowAuth:
    auth_type = raw.get("type")
    if not isinstance(auth_type, str):
        auth_type = AuthType.NONE.value
    fields = {
        attr: raw[key]
        for key, attr in _AUTH_FIELDS.items()
        if isinstance(raw.get(key), str)
    }
    return WorkflowAuth(
        type=AuthType(auth_type) if auth_type in VALID_AUTH_TYPES else AuthType.NONE,
        **fields,
    )


def _is_valid_extraction(raw: Any) -> bool:
    return (
        isinstance(raw, dict)
        and isinstance(raw.get("id"), str)
        and isinstance(raw.get("name"), str)
        and isinstance(raw.get("jsonPath"), str)
    )


def _to_extraction(raw: dict) -> VariableExtraction:
    description = raw.get("description")
    return VariableExtraction(
        id=raw["id"],
        name=raw["name"],
        json_path=raw["jsonPath"],
        description=description if isinstance(description, str) else None,
    )


def _to_spec_endpoint(raw: dict) -> SpecEndpoint:
    operation_id = raw.get("operationId")
    return SpecEndpoint(
        spec_id=str(raw.get("specId") or ""),
        path=str(raw.get("path") or ""),
        method=str(raw.get("method") or ""),
        operation_id=str(operation_id) if operation_id else None,
    )


def _is_string_map(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(v, str) for v in value.values())
