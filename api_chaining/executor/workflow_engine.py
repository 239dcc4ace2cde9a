"""Sequential workflow execution.

Steps run one at a time in ascending ``order``. Each step's request fields are
resolved against the variables extracted so far, the resolved request is handed
to the execution collaborator, and any variables extracted from the response
become visible to the steps after it. The first failed step ends the run and
every step after it is recorded as skipped.
"""

import logging
import re
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from api_chaining.executor.api_client import HttpRequestExecutor, RequestExecutor
from api_chaining.executor.extraction import extract_variables
from api_chaining.models.execution import (
    ApiRequest,
    ExecutionStatus,
    StepExecutionResult,
    StepStatus,
    WorkflowExecution,
)
from api_chaining.models.workflow import (
    BODY_METHODS,
    WorkflowAuth,
    WorkflowDefinition,
    WorkflowDocument,
    WorkflowStep,
)
from api_chaining.utils.exceptions import RequestExecutionError
from api_chaining.utils.substitution import (
    SubstitutionContext,
    substitute,
    unresolved_references,
)

logger = logging.getLogger(__name__)

_URI_COMPONENT_SAFE = "-_.!~*'()"
_LONE_PERCENT_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class CancellationToken:
    """Cooperative cancellation flag, checked by the engine between steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class WorkflowEngine:
    def __init__(self, request_executor: RequestExecutor | None = None) -> None:
        self._execute_request = request_executor or HttpRequestExecutor()
        self._token: CancellationToken | None = None

    def execute(
        self,
        workflow: WorkflowDefinition,
        on_step_start: Callable[[int], None] | None = None,
        on_step_complete: Callable[[int, StepExecutionResult], None] | None = None,
        on_complete: Callable[[WorkflowExecution], None] | None = None,
        on_error: Callable[[int, str], None] | None = None,
        cancel_token: CancellationToken | None = None,
        execution_id: str | None = None,
    ) -> WorkflowExecution:
        """Run *workflow* to a terminal status. Never raises."""
        token = cancel_token or CancellationToken()
        self._token = token

        execution = WorkflowExecution(
            id=execution_id or str(uuid.uuid4()),
            workflow_id=workflow.id if isinstance(workflow, WorkflowDocument) else "",
            status=ExecutionStatus.RUNNING,
            started_at=_now(),
        )
        steps = workflow.sorted_steps()
        logger.info(
            "Executing workflow '%s' (%d steps) as %s",
            workflow.name, len(steps), execution.id,
        )

        for i, step in enumerate(steps):
            if token.cancelled:
                _skip(execution, steps[i:])
                logger.info("Execution %s aborted before step %s", execution.id, step.id)
                return _finish(execution, ExecutionStatus.ABORTED, on_complete)

            execution.current_step_index = i
            _notify(on_step_start, i)

            result = StepExecutionResult(
                step_id=step.id,
                status=StepStatus.RUNNING,
                started_at=_now(),
            )
            try:
                self._run_step(workflow, step, execution.variables, result)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.warning("Step %s failed: %s", step.id, message)
                result.status = StepStatus.FAILURE
                result.error = message
                _notify(on_error, i, message)

                result.completed_at = _now()
                execution.results.append(result)
                _notify(on_step_complete, i, result)

                _skip(execution, steps[i + 1:])
                return _finish(execution, ExecutionStatus.FAILED, on_complete)

            result.completed_at = _now()
            execution.results.append(result)
            _notify(on_step_complete, i, result)

        return _finish(execution, ExecutionStatus.COMPLETED, on_complete)

    def abort(self) -> None:
        """Stop the current execution at the next step boundary.

        Only the most recent ``execute`` call is tracked. Callers running
        several executions on one engine concurrently should pass each its own
        ``cancel_token`` and cancel that instead.
        """
        if self._token is not None:
            self._token.cancel()

    def _run_step(
        self,
        workflow: WorkflowDefinition,
        step: WorkflowStep,
        variables: dict[str, Any],
        result: StepExecutionResult,
    ) -> None:
        request = resolve_request(workflow, step, variables)
        outcome = self._execute_request(request)

        result.response = outcome.data
        if not outcome.success:
            raise RequestExecutionError(outcome.error or "Request failed")
        result.status = StepStatus.SUCCESS

        body = outcome.data.body if outcome.data is not None else None
        if step.extractions and body not in (None, ""):
            extraction = extract_variables(body, step.extractions)
            result.extracted_variables = extraction.extracted
            variables.update(extraction.extracted)
            if extraction.errors:
                result.warnings = extraction.errors
                logger.warning(
                    "Extraction warnings for step '%s': %s",
                    step.name or step.id, "; ".join(extraction.errors),
                )


def resolve_request(
    workflow: WorkflowDefinition,
    step: WorkflowStep,
    variables: dict[str, Any],
) -> ApiRequest:
    """Substitute *variables* into the step's request fields and build the final request."""
    req = step.request

    path = substitute(req.path, variables, SubstitutionContext.URL)
    headers = {k: substitute(v, variables, SubstitutionContext.HEADER) for k, v in req.headers.items()}
    query = {k: substitute(v, variables, SubstitutionContext.QUERY) for k, v in req.query_params.items()}
    body = substitute(req.body, variables, SubstitutionContext.BODY) if req.body else None

    missing = unresolved_references(
        [req.path, *req.headers.values(), *req.query_params.values(), req.body or ""],
        variables,
    )
    if missing:
        logger.warning(
            "Step %s references unresolved variables: %s", step.id, ", ".join(missing)
        )

    url = workflow.server_url + path
    query_string = build_query_string(query)
    if query_string:
        url = f"{url}?{query_string}"

    return ApiRequest(
        method=req.method,
        url=url,
        headers=headers,
        body=body if req.method in BODY_METHODS else None,
        auth=req.auth or workflow.shared_auth or WorkflowAuth(),
    )


def build_query_string(params: dict[str, str]) -> str:
    """Encode non-empty parameters as ``k=v&...``.

    Values arrive with substituted variables already percent-encoded, so
    existing ``%XX`` escapes are kept and everything else is encoded once.
    This differs from encoding each value whole: a literal ``%2F`` typed into
    a query template is sent as ``%2F``, not ``%252F``. A lone ``%`` is still
    encoded as ``%25``.
    """
    pairs = []
    for key, value in params.items():
        if not value:
            continue
        encoded_value = quote(
            _LONE_PERCENT_RE.sub("%25", value), safe=_URI_COMPONENT_SAFE + "%"
        )
        pairs.append(f"{quote(key, safe=_URI_COMPONENT_SAFE)}={encoded_value}")
    return "&".join(pairs)


def _skip(execution: WorkflowExecution, steps: list[WorkflowStep]) -> None:
    for step in steps:
        execution.results.append(
            StepExecutionResult(step_id=step.id, status=StepStatus.SKIPPED)
        )


def _finish(
    execution: WorkflowExecution,
    status: ExecutionStatus,
    on_complete: Callable[[WorkflowExecution], None] | None,
) -> WorkflowExecution:
    execution.status = status
    execution.completed_at = _now()
    logger.info("Execution %s finished: %s", execution.id, status.value)
    _notify(on_complete, execution)
    return execution


def _notify(callback: Callable[..., None] | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.exception("Execution callback %r raised", callback)


def _now() -> datetime:
    return datetime.now(timezone.utc)
