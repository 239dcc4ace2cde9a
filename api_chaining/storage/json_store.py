import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic.alias_generators import to_snake

from api_chaining.models.execution import WorkflowExecution
from api_chaining.models.workflow import WorkflowDefinition, WorkflowDocument

logger = logging.getLogger(__name__)

# Fields a caller may change; id and created_at are fixed at creation
_UPDATABLE_FIELDS = set(WorkflowDefinition.model_fields)


class JsonStore:
    def __init__(self, base_dir: str | Path | None = None):
        if base_dir is None:
            base_dir = os.environ.get("APICHAIN_DATA_DIR", "data")
        self._base = Path(base_dir)
        self._workflows_dir = self._base / "workflows"
        self._executions_dir = self._base / "executions"
        self._workflows_dir.mkdir(parents=True, exist_ok=True)
        self._executions_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _atomic_write(self, path: Path, data: dict) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, default=str))
        os.replace(tmp, path)

    def _workflow_path(self, workflow_id: str) -> Path:
        return self._workflows_dir / f"{_safe_id(workflow_id)}.json"

    def _execution_path(self, execution_id: str) -> Path:
        return self._executions_dir / f"{_safe_id(execution_id)}.json"

    # Workflows

    def create_workflow(self, definition: WorkflowDefinition) -> WorkflowDocument:
        now = datetime.now(timezone.utc)
        doc = WorkflowDocument(
            **definition.model_dump(),
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._atomic_write(self._workflow_path(doc.id), doc.model_dump(mode="json", by_alias=True))
        logger.info("Created workflow %s (%s)", doc.id, doc.name)
        return doc

    def get_workflow(self, workflow_id: str) -> WorkflowDocument | None:
        path = self._workflow_path(workflow_id)
        if not path.exists():
            return None
        return WorkflowDocument.model_validate(json.loads(path.read_text()))

    def get_all_workflows(self) -> list[WorkflowDocument]:
        results = []
        for p in sorted(self._workflows_dir.glob("*.json")):
            results.append(WorkflowDocument.model_validate(json.loads(p.read_text())))
        return sorted(results, key=lambda w: w.updated_at, reverse=True)

    def update_workflow(self, workflow_id: str, partial: dict[str, Any]) -> WorkflowDocument | None:
        """Apply *partial* (snake_case or camelCase keys) and bump ``updated_at``."""
        with self._lock:
            current = self.get_workflow(workflow_id)
            if current is None:
                return None
            merged = current.model_dump()
            for key, value in partial.items():
                field = to_snake(key)
                if field in _UPDATABLE_FIELDS:
                    merged[field] = value
            merged["updated_at"] = datetime.now(timezone.utc)
            doc = WorkflowDocument.model_validate(merged)
            self._atomic_write(self._workflow_path(doc.id), doc.model_dump(mode="json", by_alias=True))
        return doc

    def delete_workflow(self, workflow_id: str) -> bool:
        with self._lock:
            path = self._workflow_path(workflow_id)
            if not path.exists():
                return False
            path.unlink()
        logger.info("Deleted workflow %s", workflow_id)
        return True

    # Executions

    def save_execution(self, execution: WorkflowExecution) -> None:
        with self._lock:
            path = self._execution_path(execution.id)
            self._atomic_write(path, execution.model_dump(mode="json", by_alias=True))

    def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        path = self._execution_path(execution_id)
        if not path.exists():
            return None
        return WorkflowExecution.model_validate(json.loads(path.read_text()))

    def list_executions(self, workflow_id: str | None = None) -> list[WorkflowExecution]:
        results = []
        for p in sorted(self._executions_dir.glob("*.json")):
            execution = WorkflowExecution.model_validate(json.loads(p.read_text()))
            if workflow_id is None or execution.workflow_id == workflow_id:
                results.append(execution)
        return sorted(results, key=lambda e: e.started_at)


def _safe_id(value: str) -> str:
    """Keep ids usable as file names; anything else cannot name a stored record."""
    if not value or not all(c.isalnum() or c in "-_" for c in value):
        return "_invalid_"
    return value
