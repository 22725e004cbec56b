"""Workflow automation engine.

This package holds first-class types for:
- trigger events and trigger matching
- condition expressions and their fail-closed evaluator
- the action registry and the sequential action executor
- execution records and their RUNNING -> terminal state machine

Persistence and concrete side effects are collaborators reached through
protocols (see ``stores`` and ``handlers``).
"""

from matter_workflows.engine.actions import (
    ActionHandler,
    ActionOutcome,
    ActionRegistry,
    ExecutionContext,
)
from matter_workflows.engine.errors import (
    ActionHandlerError,
    DefinitionNotFound,
    DispatchCrashed,
    DispatchError,
    InvalidWorkflowDefinition,
    PersistenceError,
)
from matter_workflows.engine.models import (
    ActionConfig,
    ActionKind,
    ExecutionRecord,
    StepOutcome,
    StepResult,
    TriggerConfig,
    WorkflowDefinition,
)
from matter_workflows.engine.state_machine import ExecutionStatus
from matter_workflows.engine.triggers import TriggerEvent
from matter_workflows.engine.workflow_engine import WorkflowEngine

__all__ = [
    "ActionConfig",
    "ActionHandler",
    "ActionHandlerError",
    "ActionKind",
    "ActionOutcome",
    "ActionRegistry",
    "DefinitionNotFound",
    "DispatchCrashed",
    "DispatchError",
    "ExecutionContext",
    "ExecutionRecord",
    "ExecutionStatus",
    "InvalidWorkflowDefinition",
    "PersistenceError",
    "StepOutcome",
    "StepResult",
    "TriggerConfig",
    "TriggerEvent",
    "WorkflowDefinition",
    "WorkflowEngine",
]
