from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from api_chaining.models.workflow import CamelModel, HttpMethod, WorkflowAuth


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_STATUSES = {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.ABORTED}


class StepStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class ResponseData(CamelModel):
    status: int
    status_text: str = ""
    headers: dict[str, str] = {}
    body: Any = None
    time: float = 0.0  # milliseconds
    size: float = 0.0  # kilobytes


class ApiRequest(CamelModel):
    """A fully resolved request, ready for the execution collaborator."""

    method: HttpMethod
    url: str
    headers: dict[str, str] = {}
    body: str | None = None
    auth: WorkflowAuth = WorkflowAuth()


class RequestOutcome(BaseModel):
    success: bool
    data: ResponseData | None = None
    error: str | None = None


class StepExecutionResult(CamelModel):
    step_id: str
    status: StepStatus
    extracted_variables: dict[str, Any] = {}
    response: ResponseData | None = None
    error: str | None = None
    warnings: list[str] = []
    started_at: datetime | None = None
    completed_at: datetime | None = None


class WorkflowExecution(CamelModel):
    id: str
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_step_index: int = 0
    results: list[StepExecutionResult] = []
    variables: dict[str, Any] = {}
    started_at: datetime
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
