"""Workflow definitions and execution records.

Definitions are immutable dataclasses with an explicit JSON contract
(``to_json``/``from_json``) so they can be authored, stored and transmitted
as plain structured data. Execution records are pydantic models because they
are persisted and served as-is.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .conditions import ConditionExpr, condition_from_json, condition_to_json
from .errors import InvalidWorkflowDefinition
from .state_machine import ExecutionStatus


class ActionKind(str, Enum):
    """Action kinds shipped with the engine.

    Kinds are open: a registry may carry handlers for other tags as well.
    """

    CREATE_RECORD = "create_record"
    UPDATE_RECORD = "update_record"
    DELETE_RECORD = "delete_record"
    CREATE_TASK = "create_task"
    ADD_NOTE = "add_note"
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    SEND_EMAIL = "send_email"
    HTTP_REQUEST = "http_request"
    DELAY = "delay"


def _optional_condition(raw: object) -> ConditionExpr | None:
    if raw is None:
        return None
    return condition_from_json(raw)


def _mapping(raw: object, what: str) -> dict[str, object]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise InvalidWorkflowDefinition(f"{what} must be an object, got {raw!r}")
    return dict(raw)


@dataclass(frozen=True, slots=True)
class TriggerConfig:
    """The class of event a workflow listens for.

    ``filters`` map a field (dotted path into the event data) to either a
    literal expected value or a predicate ``{"operator": ..., "value": ...}``.
    ``condition`` is the workflow-level gate evaluated against trigger data.
    """

    type: str
    filters: dict[str, object] = field(default_factory=dict)
    entity_type: str | None = None
    condition: ConditionExpr | None = None

    def __post_init__(self) -> None:
        # Same normalization as from_json, so decoding an encoded config is lossless.
        if isinstance(self.type, str):
            object.__setattr__(self, "type", self.type.strip())

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"type": self.type, "filters": dict(self.filters)}
        if self.entity_type is not None:
            out["entityType"] = self.entity_type
        if self.condition is not None:
            out["condition"] = condition_to_json(self.condition)
        return out

    @staticmethod
    def from_json(obj: object) -> TriggerConfig:
        if not isinstance(obj, Mapping):
            raise InvalidWorkflowDefinition(f"Trigger must be an object, got {obj!r}")
        type_raw = obj.get("type")
        if not isinstance(type_raw, str) or not type_raw.strip():
            raise InvalidWorkflowDefinition("Trigger needs a non-empty 'type'")
        entity_raw = obj.get("entityType")
        return TriggerConfig(
            type=type_raw.strip(),
            filters=_mapping(obj.get("filters"), "Trigger filters"),
            entity_type=entity_raw if isinstance(entity_raw, str) and entity_raw else None,
            condition=_optional_condition(obj.get("condition")),
        )


@dataclass(frozen=True, slots=True)
class ActionConfig:
    kind: str
    params: dict[str, object] = field(default_factory=dict)
    condition: ConditionExpr | None = None
    continue_on_error: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.kind, str):
            object.__setattr__(self, "kind", self.kind.strip().lower())

    def to_json(self, order: int | None = None) -> dict[str, object]:
        out: dict[str, object] = {"kind": self.kind, "params": dict(self.params)}
        if self.condition is not None:
            out["condition"] = condition_to_json(self.condition)
        if self.continue_on_error:
            out["continueOnError"] = True
        if order is not None:
            out["order"] = order
        return out

    @staticmethod
    def from_json(obj: object) -> ActionConfig:
        if not isinstance(obj, Mapping):
            raise InvalidWorkflowDefinition(f"Action must be an object, got {obj!r}")
        # Older definitions used "type"/"config" instead of "kind"/"params".
        kind_raw = obj.get("kind", obj.get("type"))
        if not isinstance(kind_raw, str) or not kind_raw.strip():
            raise InvalidWorkflowDefinition("Action needs a non-empty 'kind'")
        continue_raw = obj.get("continueOnError", False)
        if not isinstance(continue_raw, bool):
            raise InvalidWorkflowDefinition("'continueOnError' must be a boolean")
        return ActionConfig(
            kind=kind_raw.strip().lower(),
            params=_mapping(obj.get("params", obj.get("config")), "Action params"),
            condition=_optional_condition(obj.get("condition")),
            continue_on_error=continue_raw,
        )


def actions_to_json(actions: tuple[ActionConfig, ...] | list[ActionConfig]) -> list[dict[str, object]]:
    return [a.to_json(order=i) for i, a in enumerate(actions)]


def actions_from_json(raw: object) -> tuple[ActionConfig, ...]:
    """Decode an action list, keeping authored order.

    Entries carrying an ``order`` key are stably sorted by it (the workflow
    builder persists it); otherwise list order wins.
    """

    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise InvalidWorkflowDefinition(f"Actions must be a list, got {raw!r}")

    def _order(indexed: tuple[int, object]) -> tuple[int, int]:
        idx, item = indexed
        order = item.get("order") if isinstance(item, Mapping) else None
        if isinstance(order, int) and not isinstance(order, bool):
            return order, idx
        return idx, idx

    ordered = sorted(enumerate(raw), key=_order)
    return tuple(ActionConfig.from_json(item) for _, item in ordered)


@dataclass(frozen=True, slots=True)
class WorkflowDefinition:
    id: str
    name: str
    trigger: TriggerConfig
    actions: tuple[ActionConfig, ...] = ()
    description: str = ""
    is_active: bool = False

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "trigger": self.trigger.to_json(),
            "actions": actions_to_json(self.actions),
        }

    @staticmethod
    def from_json(obj: object) -> WorkflowDefinition:
        if not isinstance(obj, Mapping):
            raise InvalidWorkflowDefinition(f"Workflow must be an object, got {obj!r}")
        id_raw = obj.get("id")
        name_raw = obj.get("name")
        if not isinstance(id_raw, str) or not id_raw:
            raise InvalidWorkflowDefinition("Workflow needs a non-empty 'id'")
        if not isinstance(name_raw, str):
            raise InvalidWorkflowDefinition("Workflow needs a 'name'")
        description_raw = obj.get("description")
        return WorkflowDefinition(
            id=id_raw,
            name=name_raw,
            description=description_raw if isinstance(description_raw, str) else "",
            is_active=obj.get("isActive") is True,
            trigger=TriggerConfig.from_json(obj.get("trigger")),
            actions=actions_from_json(obj.get("actions")),
        )


class StepOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class StepResult(BaseModel):
    """Outcome of one action in an execution, in declared order."""

    action_kind: str
    outcome: StepOutcome
    error: str | None = None


class ExecutionRecord(BaseModel):
    """Durable audit record of one workflow run."""

    id: str
    workflow_id: str
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime
    finished_at: datetime | None = None

    step_results: list[StepResult] = Field(default_factory=list)
    result: dict[str, Any] = Field(default_factory=dict)
    error: str | None = Field(
        default=None,
        description="Run-level failure such as a timeout; step failures live in step_results",
    )
