"""Error taxonomy for the workflow engine.

Only :class:`DefinitionNotFound` and :class:`PersistenceError` are expected to
leave ``WorkflowEngine.execute``/``dispatch``; anything else escaping a run is a
bug and ``dispatch`` reports it as :class:`DispatchCrashed`. Condition and
action failures are captured locally and turned into step results.
"""

from __future__ import annotations

from dataclasses import dataclass


class WorkflowError(Exception):
    """Base class for all engine errors."""


@dataclass(frozen=True, slots=True)
class DefinitionNotFound(WorkflowError):
    """Raised when a workflow id does not resolve to a stored definition."""

    workflow_id: str

    def __str__(self) -> str:
        return f"Workflow not found: {self.workflow_id}"


@dataclass(frozen=True, slots=True)
class ExecutionNotFound(WorkflowError):
    execution_id: str

    def __str__(self) -> str:
        return f"Execution not found: {self.execution_id}"


class InvalidWorkflowDefinition(WorkflowError, ValueError):
    """A trigger, action or condition could not be decoded or validated."""


class ConditionEvaluationError(WorkflowError):
    """Internal to the condition evaluator; always resolved to ``False``."""


class ActionHandlerError(WorkflowError):
    """Raised by action handlers to fail a step with a readable message."""


@dataclass(frozen=True, slots=True)
class UnknownActionKind(WorkflowError):
    kind: str

    def __str__(self) -> str:
        return f"Unknown action kind: {self.kind}"


class PersistenceError(WorkflowError):
    """The durable store could not be read or written."""


class _IncompleteDispatch(WorkflowError):
    """The batch still ran to completion; ``executions`` holds the records that
    were finalized and ``errors`` maps workflow ids to the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        executions: list[object] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        super().__init__(message)
        self.executions = executions or []
        self.errors = errors or {}


class DispatchError(_IncompleteDispatch, PersistenceError):
    """One or more matched workflows could not be recorded during dispatch."""


class DispatchCrashed(_IncompleteDispatch, RuntimeError):
    """A matched workflow failed during dispatch for a reason other than persistence.

    ``errors`` may also hold persistence failures from the same batch.
    """


@dataclass(frozen=True, slots=True)
class IllegalTransitionError(WorkflowError, ValueError):
    current: str
    target: str

    def __str__(self) -> str:
        return f"Illegal transition: {self.current} -> {self.target}"
