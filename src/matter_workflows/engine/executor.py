from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .actions import ActionRegistry, ExecutionContext
from .conditions import evaluate
from .errors import UnknownActionKind
from .models import ActionConfig, StepOutcome, StepResult
from .state_machine import ExecutionStatus
from .templates import resolve_params

logger = logging.getLogger(__name__)

StepCallback = Callable[[StepResult], None]


@dataclass(frozen=True, slots=True)
class ExecutorOutcome:
    step_results: list[StepResult]
    status: ExecutionStatus


def derive_status(step_results: Sequence[StepResult]) -> ExecutionStatus:
    """Overall status of a finished chain.

    No failures means SUCCEEDED (condition skips are not failures). With a
    failure, any success makes the run PARTIAL, otherwise it FAILED.
    """

    outcomes = {s.outcome for s in step_results}
    if StepOutcome.FAILED not in outcomes:
        return ExecutionStatus.SUCCEEDED
    if StepOutcome.SUCCESS in outcomes:
        return ExecutionStatus.PARTIAL
    return ExecutionStatus.FAILED


class ActionExecutor:
    """Runs an ordered action chain, one step at a time."""

    def __init__(self, registry: ActionRegistry) -> None:
        self._registry = registry

    def run(
        self,
        actions: Sequence[ActionConfig],
        context: ExecutionContext,
        on_step: StepCallback | None = None,
    ) -> ExecutorOutcome:
        results: list[StepResult] = []
        aborted = False

        def _emit(step: StepResult) -> None:
            results.append(step)
            if on_step is not None:
                on_step(step)

        for index, action in enumerate(actions):
            if aborted:
                _emit(StepResult(action_kind=action.kind, outcome=StepOutcome.SKIPPED))
                continue

            if action.condition is not None and not evaluate(action.condition, context.scope()):
                logger.info(
                    "Step skipped by condition",
                    extra={"execution_id": context.execution_id, "step": index, "action_kind": action.kind},
                )
                _emit(StepResult(action_kind=action.kind, outcome=StepOutcome.SKIPPED))
                continue

            step = self._run_step(index, action, context)
            _emit(step)

            if step.outcome is StepOutcome.FAILED and not action.continue_on_error:
                logger.warning(
                    "Step failed; skipping remaining steps",
                    extra={"execution_id": context.execution_id, "step": index, "action_kind": action.kind},
                )
                aborted = True

        return ExecutorOutcome(step_results=results, status=derive_status(results))

    def _run_step(self, index: int, action: ActionConfig, context: ExecutionContext) -> StepResult:
        handler = self._registry.resolve(action.kind)
        if handler is None:
            return StepResult(
                action_kind=action.kind,
                outcome=StepOutcome.FAILED,
                error=str(UnknownActionKind(kind=action.kind)),
            )

        params = resolve_params(action.params, context.scope())
        try:
            outcome = handler.invoke(params, context)
        except Exception as e:
            logger.exception(
                "Action handler raised",
                extra={"execution_id": context.execution_id, "step": index, "action_kind": action.kind},
            )
            return StepResult(
                action_kind=action.kind,
                outcome=StepOutcome.FAILED,
                error=str(e) or type(e).__name__,
            )

        if not outcome.success:
            return StepResult(
                action_kind=action.kind,
                outcome=StepOutcome.FAILED,
                error=outcome.error or "Action failed",
            )

        if outcome.output:
            context.prior_results.update(outcome.output)
        return StepResult(action_kind=action.kind, outcome=StepOutcome.SUCCESS)
