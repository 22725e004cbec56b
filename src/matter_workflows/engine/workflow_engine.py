"""Workflow engine: the public entry point for running automations.

The engine is an explicit instance wired with its collaborators. It keeps no
state between calls: every call re-reads the definitions it needs, and every
run owns exactly one execution record.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .actions import ActionRegistry, ExecutionContext
from .conditions import evaluate
from .errors import (
    DefinitionNotFound,
    DispatchCrashed,
    DispatchError,
    IllegalTransitionError,
    PersistenceError,
)
from .executor import ActionExecutor
from .models import ExecutionRecord, StepOutcome, StepResult, WorkflowDefinition
from .recorder import ExecutionRecorder
from .state_machine import ExecutionStatus
from .stores import DefinitionStore, ExecutionStore
from .triggers import TriggerEvent, match

logger = logging.getLogger(__name__)


class WorkflowEngine:
    def __init__(
        self,
        *,
        definitions: DefinitionStore,
        executions: ExecutionStore,
        registry: ActionRegistry,
    ) -> None:
        self._definitions = definitions
        self._recorder = ExecutionRecorder(executions)
        self._executor = ActionExecutor(registry)

    @property
    def recorder(self) -> ExecutionRecorder:
        return self._recorder

    def execute(
        self,
        workflow_id: str,
        trigger_data: Mapping[str, Any],
        *,
        on_started: Callable[[str], None] | None = None,
    ) -> ExecutionRecord:
        """Run one workflow against ``trigger_data`` and return its finalized record.

        Does not require the workflow to be active (manual/forced runs).

        Raises:
            DefinitionNotFound: unknown workflow id; no record is created.
            PersistenceError: the execution could not be durably recorded.
        """

        workflow = self._definitions.get_workflow(workflow_id)
        if workflow is None:
            raise DefinitionNotFound(workflow_id=workflow_id)
        return self._run(workflow, dict(trigger_data), on_started=on_started)

    def dispatch(self, event: TriggerEvent) -> list[ExecutionRecord]:
        """Execute every active workflow that ``event`` fires.

        Matches run as independent tasks; one failing does not stop the
        others. Persistence failures are raised together as a
        :class:`DispatchError` once the whole batch has finished; if any match
        failed for another reason the batch raises :class:`DispatchCrashed`.
        """

        candidates = self._definitions.list_active_workflows()
        matched = [
            w for w in match(event, candidates) if evaluate(w.trigger.condition, event.data)
        ]
        logger.info(
            "Event dispatched",
            extra={
                "event_type": event.type,
                "candidates": len(candidates),
                "matched": [w.id for w in matched],
            },
        )
        if not matched:
            return []

        records: list[ExecutionRecord] = []
        errors: dict[str, Exception] = {}
        crashed = False

        with ThreadPoolExecutor(
            max_workers=len(matched), thread_name_prefix="workflow-dispatch"
        ) as pool:
            futures = [
                (w.id, pool.submit(self.execute, w.id, event.data)) for w in matched
            ]
            for workflow_id, future in futures:
                try:
                    records.append(future.result())
                except DefinitionNotFound:
                    logger.warning(
                        "Matched workflow disappeared before execution",
                        extra={"workflow_id": workflow_id},
                    )
                except PersistenceError as e:
                    logger.error(
                        "Workflow execution could not be recorded",
                        extra={"workflow_id": workflow_id, "error": str(e)},
                    )
                    errors[workflow_id] = e
                except Exception as e:
                    logger.exception(
                        "Workflow execution failed unexpectedly",
                        extra={"workflow_id": workflow_id},
                    )
                    errors[workflow_id] = e
                    crashed = True

        if errors:
            message = f"{len(errors)} of {len(matched)} workflow executions could not be completed"
            error_cls = DispatchCrashed if crashed else DispatchError
            raise error_cls(message, executions=records, errors=errors)
        return records

    def _run(
        self,
        workflow: WorkflowDefinition,
        trigger_data: dict[str, Any],
        *,
        on_started: Callable[[str], None] | None,
    ) -> ExecutionRecord:
        execution_id = self._recorder.begin(workflow.id, trigger_data)
        if on_started is not None:
            on_started(execution_id)

        context = ExecutionContext(
            workflow_id=workflow.id,
            execution_id=execution_id,
            trigger_data=trigger_data,
        )

        def _record(step: StepResult) -> None:
            self._recorder.record_step(execution_id, step)

        try:
            if not evaluate(workflow.trigger.condition, trigger_data):
                logger.info(
                    "Workflow condition not met; skipping all actions",
                    extra={"workflow_id": workflow.id, "execution_id": execution_id},
                )
                for action in workflow.actions:
                    _record(StepResult(action_kind=action.kind, outcome=StepOutcome.SKIPPED))
                return self._recorder.finalize(execution_id, ExecutionStatus.SUCCEEDED, {})

            outcome = self._executor.run(workflow.actions, context, on_step=_record)
        except PersistenceError:
            # The record stays RUNNING: an honest label for an unrecorded run.
            raise
        except IllegalTransitionError:
            # Someone else (e.g. a deadline) already finalized this record.
            raise
        except Exception as e:
            logger.exception(
                "Workflow execution crashed",
                extra={"workflow_id": workflow.id, "execution_id": execution_id},
            )
            return self._recorder.finalize(
                execution_id,
                ExecutionStatus.FAILED,
                context.prior_results,
                error=str(e) or type(e).__name__,
            )

        return self._recorder.finalize(execution_id, outcome.status, context.prior_results)
