"""Caller-side timeouts layered over :meth:`WorkflowEngine.execute`.

The engine never polls for cancellation. This helper races a run against a
deadline in a worker thread; if the deadline fires first the run's record is
finalized FAILED with a timeout error. The abandoned run keeps going in the
background, but the store refuses its later writes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Future
from typing import Any

from .errors import IllegalTransitionError
from .models import ExecutionRecord
from .state_machine import ExecutionStatus
from .workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)


def execute_with_deadline(
    engine: WorkflowEngine,
    workflow_id: str,
    trigger_data: Mapping[str, Any],
    *,
    timeout_seconds: float,
) -> ExecutionRecord:
    if timeout_seconds <= 0:
        return engine.execute(workflow_id, trigger_data)

    started = threading.Event()
    execution_ids: list[str] = []
    outcome: Future[ExecutionRecord] = Future()

    def _on_started(execution_id: str) -> None:
        execution_ids.append(execution_id)
        started.set()

    def _run() -> None:
        try:
            outcome.set_result(engine.execute(workflow_id, trigger_data, on_started=_on_started))
        except IllegalTransitionError as e:
            logger.warning(
                "Late write from timed-out execution refused",
                extra={"workflow_id": workflow_id, "execution_ids": execution_ids},
            )
            outcome.set_exception(e)
        except Exception as e:
            outcome.set_exception(e)
        finally:
            started.set()

    worker = threading.Thread(target=_run, name=f"workflow-run-{workflow_id}", daemon=True)
    worker.start()

    try:
        return outcome.result(timeout=timeout_seconds)
    except TimeoutError:
        pass

    # Still loading the definition or creating the record; wait for the id.
    started.wait()
    if outcome.done() or not execution_ids:
        return outcome.result()

    execution_id = execution_ids[0]
    logger.warning(
        "Execution exceeded deadline",
        extra={
            "workflow_id": workflow_id,
            "execution_id": execution_id,
            "timeout_seconds": timeout_seconds,
        },
    )
    try:
        return engine.recorder.finalize(
            execution_id,
            ExecutionStatus.FAILED,
            {},
            error=f"Execution timed out after {timeout_seconds:g}s",
        )
    except IllegalTransitionError:
        # The run finished in the meantime; its own result wins.
        return outcome.result()
