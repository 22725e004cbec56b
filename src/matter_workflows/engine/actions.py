from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from .errors import InvalidWorkflowDefinition, UnknownActionKind
from .models import ActionConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExecutionContext:
    """Mutable state threaded through one action chain.

    ``prior_results`` accumulates the outputs of successful steps so later
    steps can reference them (e.g. an email quoting ``createdTaskId``).
    """

    workflow_id: str
    execution_id: str
    trigger_data: dict[str, object]
    prior_results: dict[str, object] = field(default_factory=dict)

    def scope(self) -> dict[str, object]:
        """Lookup namespace for templates and step conditions.

        Trigger fields and prior outputs are available at the top level (a
        later output shadows a trigger field of the same name). The unshadowed
        values stay reachable under ``trigger`` and ``results``.
        """

        return {
            **self.trigger_data,
            **self.prior_results,
            "trigger": self.trigger_data,
            "results": self.prior_results,
        }


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    success: bool
    output: dict[str, object] | None = None
    error: str | None = None

    @staticmethod
    def ok(**output: object) -> ActionOutcome:
        return ActionOutcome(success=True, output=dict(output))

    @staticmethod
    def failed(error: str) -> ActionOutcome:
        return ActionOutcome(success=False, error=error)


class ActionHandler(Protocol):
    """Performs one kind of side effect.

    Handlers may either return a failed outcome or raise; the executor turns
    both into a FAILED step.
    """

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome: ...


class ActionRegistry:
    """Maps action kind tags to handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, ActionHandler] = {}

    def register(self, kind: str, handler: ActionHandler, *, replace: bool = False) -> None:
        key = kind.strip().lower()
        if not key:
            raise ValueError("Action kind must be non-empty")
        if key in self._handlers and not replace:
            raise ValueError(f"Handler already registered for action kind: {key}")
        self._handlers[key] = handler
        logger.debug("Action handler registered", extra={"action_kind": key})

    def resolve(self, kind: str) -> ActionHandler | None:
        return self._handlers.get(kind.strip().lower())

    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    def validate(self, actions: Iterable[ActionConfig]) -> None:
        """Reject action lists naming kinds that have no handler."""

        unknown = [a.kind for a in actions if self.resolve(a.kind) is None]
        if unknown:
            raise InvalidWorkflowDefinition(str(UnknownActionKind(kind=", ".join(unknown))))
