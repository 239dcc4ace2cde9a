class ApiChainingError(Exception):
    """Base exception for the package."""


class RequestExecutionError(ApiChainingError):
    """The execution collaborator reported a failed request."""


class WorkflowImportError(ApiChainingError):
    """Serialized workflow text was rejected on import."""

    def __init__(self, field: str, reason: str, step_index: int | None = None) -> None:
        self.field = field
        self.reason = reason
        self.step_index = step_index
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.step_index is not None:
            return f"Invalid workflow: step {self.step_index}: \"{self.field}\" {self.reason}"
        return f"Invalid workflow: \"{self.field}\" {self.reason}"


class WorkflowNotFoundError(ApiChainingError):
    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' not found")


class ExecutionNotFoundError(ApiChainingError):
    def __init__(self, execution_id: str) -> None:
        self.execution_id = execution_id
        super().__init__(f"Execution '{execution_id}' not found")
