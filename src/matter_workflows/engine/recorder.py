from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .errors import ExecutionNotFound
from .models import ExecutionRecord, StepResult
from .state_machine import ExecutionStatus, transition
from .stores import ExecutionStore

logger = logging.getLogger(__name__)


class ExecutionRecorder:
    """Owns the lifecycle of execution records.

    A record is created RUNNING before any action runs, gets one step result
    appended per decided step, and is finalized exactly once.
    """

    def __init__(self, store: ExecutionStore) -> None:
        self._store = store

    def begin(self, workflow_id: str, trigger_data: Mapping[str, Any]) -> str:
        execution_id = self._store.create_execution(workflow_id, dict(trigger_data))
        logger.info(
            "Execution started",
            extra={"workflow_id": workflow_id, "execution_id": execution_id},
        )
        return execution_id

    def record_step(self, execution_id: str, step: StepResult) -> None:
        self._store.append_step_result(execution_id, step)

    def finalize(
        self,
        execution_id: str,
        status: ExecutionStatus,
        result: Mapping[str, Any],
        *,
        error: str | None = None,
    ) -> ExecutionRecord:
        current = self.get(execution_id)
        transition(current=current.status, to=status)

        record = self._store.finalize_execution(execution_id, status, dict(result), error)
        logger.info(
            "Execution finished",
            extra={
                "workflow_id": record.workflow_id,
                "execution_id": execution_id,
                "status": status.value,
                "steps": len(record.step_results),
            },
        )
        return record

    def get(self, execution_id: str) -> ExecutionRecord:
        record = self._store.get_execution(execution_id)
        if record is None:
            raise ExecutionNotFound(execution_id=execution_id)
        return record
