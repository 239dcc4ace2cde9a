import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import StreamingResponse

from api_chaining.api import sse
from api_chaining.executor.workflow_engine import CancellationToken, WorkflowEngine
from api_chaining.models.execution import StepExecutionResult, WorkflowExecution
from api_chaining.models.workflow import WorkflowDefinition, WorkflowDocument
from api_chaining.serialization.workflow_io import export_workflow, import_workflow
from api_chaining.utils.exceptions import (
    ExecutionNotFoundError,
    WorkflowImportError,
    WorkflowNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _load_workflow(request: Request, workflow_id: str) -> WorkflowDocument:
    workflow = request.app.state.store.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(404, str(WorkflowNotFoundError(workflow_id)))
    return workflow


# --- Workflows ---

@router.get("/workflows")
def list_workflows(request: Request):
    return [_dump(w) for w in request.app.state.store.get_all_workflows()]


@router.post("/workflows", status_code=201)
def create_workflow(definition: WorkflowDefinition, request: Request):
    return _dump(request.app.state.store.create_workflow(definition))


@router.get("/workflows/{workflow_id}")
def get_workflow(workflow_id: str, request: Request):
    return _dump(_load_workflow(request, workflow_id))


@router.patch("/workflows/{workflow_id}")
def update_workflow(workflow_id: str, partial: dict[str, Any], request: Request):
    try:
        updated = request.app.state.store.update_workflow(workflow_id, partial)
    except ValueError as e:
        raise HTTPException(422, str(e))
    if updated is None:
        raise HTTPException(404, str(WorkflowNotFoundError(workflow_id)))
    return _dump(updated)


@router.delete("/workflows/{workflow_id}", status_code=204)
def delete_workflow(workflow_id: str, request: Request):
    if not request.app.state.store.delete_workflow(workflow_id):
        raise HTTPException(404, str(WorkflowNotFoundError(workflow_id)))
    return Response(status_code=204)


@router.get("/workflows/{workflow_id}/export")
def export(workflow_id: str, request: Request):
    workflow = _load_workflow(request, workflow_id)
    return Response(
        content=export_workflow(workflow),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{workflow_id}.json"'},
    )


@router.post("/workflows/import", status_code=201)
async def import_(request: Request):
    text = (await request.body()).decode("utf-8", errors="replace")
    try:
        definition = import_workflow(text)
    except WorkflowImportError as e:
        raise HTTPException(
            400,
            {"message": str(e), "field": e.field, "reason": e.reason, "step_index": e.step_index},
        )
    return _dump(request.app.state.store.create_workflow(definition))


# --- Executions ---

@router.get("/workflows/{workflow_id}/executions")
def list_executions(workflow_id: str, request: Request):
    return [_dump(e) for e in request.app.state.store.list_executions(workflow_id)]


@router.post("/workflows/{workflow_id}/executions", status_code=202)
def create_execution(workflow_id: str, request: Request):
    store = request.app.state.store
    running: dict[str, CancellationToken] = request.app.state.running
    request_executor = request.app.state.request_executor
    workflow = _load_workflow(request, workflow_id)

    execution_id = str(uuid.uuid4())
    token = CancellationToken()
    running[execution_id] = token

    # Live record for polling; rebuilt from engine callbacks as steps finish
    snapshot = WorkflowExecution(
        id=execution_id,
        workflow_id=workflow.id,
        started_at=datetime.now(timezone.utc),
    )
    store.save_execution(snapshot)

    def on_step_start(index: int) -> None:
        snapshot.current_step_index = index
        sse.publish(execution_id, "step_start", {"index": index})

    def on_step_complete(index: int, result: StepExecutionResult) -> None:
        snapshot.results.append(result)
        store.save_execution(snapshot)
        sse.publish(execution_id, "step_complete", {"index": index, "result": _dump(result)})

    def on_error(index: int, message: str) -> None:
        sse.publish(execution_id, "error", {"index": index, "message": message})

    def run_in_background():
        engine = WorkflowEngine(request_executor)
        try:
            execution = engine.execute(
                workflow,
                on_step_start=on_step_start,
                on_step_complete=on_step_complete,
                on_error=on_error,
                cancel_token=token,
                execution_id=execution_id,
            )
            store.save_execution(execution)
            running.pop(execution_id, None)
            sse.publish(execution_id, "complete", _dump(execution))
        finally:
            running.pop(execution_id, None)
            sse.close(execution_id)

    thread = threading.Thread(target=run_in_background, daemon=True)
    thread.start()

    return {"execution_id": execution_id}


@router.get("/executions/{execution_id}")
def get_execution(execution_id: str, request: Request):
    execution = request.app.state.store.get_execution(execution_id)
    if execution is None:
        raise HTTPException(404, str(ExecutionNotFoundError(execution_id)))
    return _dump(execution)


@router.post("/executions/{execution_id}/abort")
def abort_execution(execution_id: str, request: Request):
    token = request.app.state.running.get(execution_id)
    execution = request.app.state.store.get_execution(execution_id)
    if execution is None:
        raise HTTPException(404, str(ExecutionNotFoundError(execution_id)))
    if token is None or execution.is_terminal:
        raise HTTPException(409, f"Execution '{execution_id}' is not running")
    token.cancel()
    logger.info("Abort requested for execution %s", execution_id)
    return {"execution_id": execution_id, "aborting": True}


@router.get("/executions/{execution_id}/stream")
def stream_execution(execution_id: str, request: Request):
    # Subscribe before checking: a run still in the table has not closed its stream yet
    q = sse.subscribe(execution_id)
    if execution_id in request.app.state.running:
        return StreamingResponse(sse.event_stream(q), media_type="text/event-stream")

    sse.unsubscribe(execution_id, q)
    execution = request.app.state.store.get_execution(execution_id)
    if execution is None:
        raise HTTPException(404, str(ExecutionNotFoundError(execution_id)))
    return StreamingResponse(
        iter([sse.format_event("complete", _dump(execution))]),
        media_type="text/event-stream",
    )
