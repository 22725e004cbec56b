"""Authoring operations over stored workflow definitions."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol

from .actions import ActionRegistry
from .errors import DefinitionNotFound
from .models import ActionConfig, ExecutionRecord, TriggerConfig, WorkflowDefinition

logger = logging.getLogger(__name__)


class WorkflowRepository(Protocol):
    def list(self) -> list[WorkflowDefinition]: ...

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None: ...

    def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition: ...

    def delete(self, workflow_id: str) -> bool: ...


class ExecutionHistory(Protocol):
    def list_for_workflow(self, workflow_id: str, limit: int | None = None) -> list[ExecutionRecord]: ...

    def delete_for_workflow(self, workflow_id: str) -> int: ...

    def count_by_workflow(self, since: datetime | None = None) -> dict[str, int]: ...


RECENT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class WorkflowStats:
    total_workflows: int
    active_workflows: int
    total_executions: int
    recent_executions: int

    def to_json(self) -> dict[str, int]:
        return {
            "totalWorkflows": self.total_workflows,
            "activeWorkflows": self.active_workflows,
            "totalExecutions": self.total_executions,
            "recentExecutions": self.recent_executions,
        }


class WorkflowService:
    """Create, edit, toggle and delete workflows.

    New workflows start inactive; an operator turns them on explicitly.
    Action kinds are checked against the registry at authoring time.
    """

    def __init__(
        self,
        *,
        workflows: WorkflowRepository,
        executions: ExecutionHistory,
        registry: ActionRegistry,
    ) -> None:
        self._workflows = workflows
        self._executions = executions
        self._registry = registry

    def list(self) -> list[WorkflowDefinition]:
        return self._workflows.list()

    def get(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self._workflows.get_workflow(workflow_id)
        if workflow is None:
            raise DefinitionNotFound(workflow_id=workflow_id)
        return workflow

    def create(
        self,
        *,
        name: str,
        trigger: TriggerConfig,
        actions: Sequence[ActionConfig] = (),
        description: str = "",
    ) -> WorkflowDefinition:
        self._registry.validate(actions)
        workflow = WorkflowDefinition(
            id=uuid.uuid4().hex,
            name=name,
            description=description,
            is_active=False,
            trigger=trigger,
            actions=tuple(actions),
        )
        self._workflows.save(workflow)
        logger.info(
            "Workflow created",
            extra={"workflow_id": workflow.id, "trigger_type": trigger.type, "actions": len(actions)},
        )
        return workflow

    def update(
        self,
        workflow_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        is_active: bool | None = None,
        trigger: TriggerConfig | None = None,
        actions: Sequence[ActionConfig] | None = None,
    ) -> WorkflowDefinition:
        current = self.get(workflow_id)
        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if is_active is not None:
            changes["is_active"] = is_active
        if trigger is not None:
            changes["trigger"] = trigger
        if actions is not None:
            self._registry.validate(actions)
            changes["actions"] = tuple(actions)

        updated = replace(current, **changes)
        self._workflows.save(updated)
        logger.info("Workflow updated", extra={"workflow_id": workflow_id, "fields": sorted(changes)})
        return updated

    def toggle(self, workflow_id: str, is_active: bool) -> WorkflowDefinition:
        return self.update(workflow_id, is_active=is_active)

    def delete(self, workflow_id: str) -> None:
        """Delete a workflow together with its execution history."""

        self.get(workflow_id)
        self._executions.delete_for_workflow(workflow_id)
        self._workflows.delete(workflow_id)
        logger.info("Workflow deleted", extra={"workflow_id": workflow_id})

    def executions(self, workflow_id: str, limit: int = 50) -> list[ExecutionRecord]:
        self.get(workflow_id)
        return self._executions.list_for_workflow(workflow_id, limit=limit)

    def execution_counts(self) -> dict[str, int]:
        """Executions recorded per workflow id; workflows that never ran map to 0."""

        counts = self._executions.count_by_workflow()
        return {w.id: counts.get(w.id, 0) for w in self._workflows.list()}

    def stats(self, now: datetime | None = None) -> WorkflowStats:
        """Dashboard totals; "recent" means started within the last 24 hours."""

        now = now or datetime.now(tz=UTC)
        workflows = self._workflows.list()
        total = self._executions.count_by_workflow()
        recent = self._executions.count_by_workflow(since=now - RECENT_WINDOW)
        return WorkflowStats(
            total_workflows=len(workflows),
            active_workflows=sum(1 for w in workflows if w.is_active),
            total_executions=sum(total.values()),
            recent_executions=sum(recent.values()),
        )
