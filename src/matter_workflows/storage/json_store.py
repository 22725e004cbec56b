"""JSON-file backed stores for workflow definitions and execution records.

Each store owns one file and serializes access to it with a lock, so
concurrent runs in one process never interleave a read-modify-write. Every
I/O or decode problem surfaces as :class:`PersistenceError`.

The executions file is rewritten whole on every step append and only shrinks
when a workflow is deleted, so each write costs time proportional to the
retained history. That suits local and single-tenant use; larger deployments
should plug in a database-backed :class:`~matter_workflows.engine.stores.ExecutionStore`.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from matter_workflows.engine.errors import (
    ExecutionNotFound,
    IllegalTransitionError,
    InvalidWorkflowDefinition,
    PersistenceError,
)
from matter_workflows.engine.models import ExecutionRecord, StepResult, WorkflowDefinition
from matter_workflows.engine.state_machine import ExecutionStatus, is_terminal, transition

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _load_json_list(path: Path) -> list[object]:
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Cannot read {path}: {e}") from e
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise PersistenceError(f"Unexpected content in {path}: expected a list")
    return raw


def _save_json_list(path: Path, payload: list[object]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        tmp.replace(path)
    except (OSError, TypeError, ValueError) as e:
        raise PersistenceError(f"Cannot write {path}: {e}") from e


@dataclass
class JsonWorkflowStore:
    """Workflow definitions, stored in their wire format."""

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[WorkflowDefinition]:
        try:
            return [WorkflowDefinition.from_json(item) for item in _load_json_list(self.path)]
        except InvalidWorkflowDefinition as e:
            raise PersistenceError(f"Corrupt workflow definition in {self.path}: {e}") from e

    def _save_unlocked(self, workflows: list[WorkflowDefinition]) -> None:
        _save_json_list(self.path, [w.to_json() for w in workflows])

    def list(self) -> list[WorkflowDefinition]:
        with self._lock:
            return self._load_unlocked()

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        with self._lock:
            for workflow in self._load_unlocked():
                if workflow.id == workflow_id:
                    return workflow
            return None

    def list_active_workflows(self) -> list[WorkflowDefinition]:
        with self._lock:
            return [w for w in self._load_unlocked() if w.is_active]

    def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Insert or replace by id."""

        with self._lock:
            workflows = self._load_unlocked()
            for idx, existing in enumerate(workflows):
                if existing.id == workflow.id:
                    workflows[idx] = workflow
                    break
            else:
                workflows.append(workflow)
            self._save_unlocked(workflows)
            return workflow

    def delete(self, workflow_id: str) -> bool:
        with self._lock:
            workflows = self._load_unlocked()
            remaining = [w for w in workflows if w.id != workflow_id]
            if len(remaining) == len(workflows):
                return False
            self._save_unlocked(remaining)
            return True


@dataclass
class JsonExecutionStore:
    """Execution records; terminal records are never modified again."""

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[ExecutionRecord]:
        try:
            return [ExecutionRecord.model_validate(item) for item in _load_json_list(self.path)]
        except ValidationError as e:
            raise PersistenceError(f"Corrupt execution record in {self.path}: {e}") from e

    def _save_unlocked(self, records: list[ExecutionRecord]) -> None:
        _save_json_list(self.path, [r.model_dump(mode="json") for r in records])

    def _update_unlocked(self, execution_id: str, **updates: object) -> ExecutionRecord:
        records = self._load_unlocked()
        for idx, record in enumerate(records):
            if record.id != execution_id:
                continue
            if is_terminal(record.status):
                target = updates.get("status", ExecutionStatus.RUNNING)
                raise IllegalTransitionError(
                    current=record.status.value,
                    target=target.value if isinstance(target, ExecutionStatus) else str(target),
                )
            merged = record.model_copy(update=updates)
            records[idx] = merged
            self._save_unlocked(records)
            return merged
        raise ExecutionNotFound(execution_id=execution_id)

    def create_execution(self, workflow_id: str, trigger_data: Mapping[str, Any]) -> str:
        with self._lock:
            records = self._load_unlocked()
            record = ExecutionRecord(
                id=uuid.uuid4().hex,
                workflow_id=workflow_id,
                trigger_data=dict(trigger_data),
                status=ExecutionStatus.RUNNING,
                started_at=_utc_now(),
            )
            records.append(record)
            self._save_unlocked(records)
            return record.id

    def append_step_result(self, execution_id: str, step: StepResult) -> None:
        with self._lock:
            record = self._get_unlocked(execution_id)
            self._update_unlocked(execution_id, step_results=[*record.step_results, step])

    def finalize_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        result: Mapping[str, Any],
        error: str | None = None,
    ) -> ExecutionRecord:
        with self._lock:
            record = self._get_unlocked(execution_id)
            transition(current=record.status, to=status)
            return self._update_unlocked(
                execution_id,
                status=status,
                result=dict(result),
                error=error,
                finished_at=_utc_now(),
            )

    def _get_unlocked(self, execution_id: str) -> ExecutionRecord:
        for record in self._load_unlocked():
            if record.id == execution_id:
                return record
        raise ExecutionNotFound(execution_id=execution_id)

    def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        with self._lock:
            for record in self._load_unlocked():
                if record.id == execution_id:
                    return record
            return None

    def list_for_workflow(self, workflow_id: str, limit: int | None = None) -> list[ExecutionRecord]:
        """Executions of one workflow, newest first."""

        with self._lock:
            records = [r for r in self._load_unlocked() if r.workflow_id == workflow_id]
        # Records are appended in start order; ties on the clock keep that order.
        records.reverse()
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records[:limit] if limit is not None else records

    def count_by_workflow(self, since: datetime | None = None) -> dict[str, int]:
        """Number of executions per workflow id, optionally only those started at or after ``since``."""

        with self._lock:
            records = self._load_unlocked()
        counts = Counter(r.workflow_id for r in records if since is None or r.started_at >= since)
        return dict(counts)

    def delete_for_workflow(self, workflow_id: str) -> int:
        with self._lock:
            records = self._load_unlocked()
            remaining = [r for r in records if r.workflow_id != workflow_id]
            removed = len(records) - len(remaining)
            if removed:
                self._save_unlocked(remaining)
            logger.info(
                "Execution history deleted",
                extra={"workflow_id": workflow_id, "removed": removed},
            )
            return removed
