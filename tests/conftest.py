"""Test configuration and fixtures."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from matter_workflows.engine.actions import (
    ActionHandler,
    ActionOutcome,
    ActionRegistry,
    ExecutionContext,
)
from matter_workflows.engine.errors import ActionHandlerError
from matter_workflows.engine.models import ActionConfig, TriggerConfig, WorkflowDefinition
from matter_workflows.engine.workflow_engine import WorkflowEngine
from matter_workflows.storage import JsonExecutionStore, JsonWorkflowStore


@dataclass
class RecordingHandler:
    """Succeeds and remembers the resolved params of every call."""

    output: dict[str, object] = field(default_factory=dict)
    calls: list[dict[str, object]] = field(default_factory=list)

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        self.calls.append(dict(params))
        return ActionOutcome.ok(**self.output)


@dataclass
class FailingHandler:
    """Raises like a handler whose transport is down."""

    message: str = "simulated network error"
    calls: int = 0

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        self.calls += 1
        raise ActionHandlerError(self.message)


@dataclass
class FakeGateway:
    """In-memory RecordGateway."""

    created: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    updated: list[tuple[str, str, dict[str, object]]] = field(default_factory=list)
    deleted: list[tuple[str, str]] = field(default_factory=list)
    notes: list[tuple[str, str, str]] = field(default_factory=list)
    tags: dict[str, set[str]] = field(default_factory=dict)

    def create_record(self, entity_type: str, data: Mapping[str, object]) -> str:
        self.created.append((entity_type, dict(data)))
        return f"{entity_type.lower()}-{len(self.created)}"

    def update_record(self, entity_type: str, record_id: str, data: Mapping[str, object]) -> None:
        self.updated.append((entity_type, record_id, dict(data)))

    def delete_record(self, entity_type: str, record_id: str) -> None:
        self.deleted.append((entity_type, record_id))

    def create_task(self, data: Mapping[str, object]) -> str:
        return self.create_record("TASK", data)

    def add_note(self, entity_type: str, entity_id: str, content: str) -> str:
        self.notes.append((entity_type, entity_id, content))
        return f"note-{len(self.notes)}"

    def set_tag(self, entity_type: str, entity_id: str, tag: str, *, present: bool) -> None:
        current = self.tags.setdefault(f"{entity_type}:{entity_id}", set())
        if present:
            current.add(tag)
        else:
            current.discard(tag)


@dataclass
class RecordingMailer:
    sent: list[dict[str, str]] = field(default_factory=list)

    def send(self, *, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def workflow_store(state_dir: Path) -> JsonWorkflowStore:
    return JsonWorkflowStore(state_dir / "workflows.json")


@pytest.fixture
def execution_store(state_dir: Path) -> JsonExecutionStore:
    return JsonExecutionStore(state_dir / "executions.json")


@pytest.fixture
def recording_handler() -> Callable[..., RecordingHandler]:
    def _make(**output: object) -> RecordingHandler:
        return RecordingHandler(output=dict(output))

    return _make


@pytest.fixture
def failing_handler() -> Callable[..., FailingHandler]:
    def _make(message: str = "simulated network error") -> FailingHandler:
        return FailingHandler(message=message)

    return _make


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def make_registry() -> Callable[[Mapping[str, ActionHandler]], ActionRegistry]:
    def _make(handlers: Mapping[str, ActionHandler]) -> ActionRegistry:
        registry = ActionRegistry()
        for kind, handler in handlers.items():
            registry.register(kind, handler)
        return registry

    return _make


@pytest.fixture
def make_engine(
    workflow_store: JsonWorkflowStore,
    execution_store: JsonExecutionStore,
    make_registry: Callable[[Mapping[str, ActionHandler]], ActionRegistry],
) -> Callable[[Mapping[str, ActionHandler]], WorkflowEngine]:
    def _make(handlers: Mapping[str, ActionHandler]) -> WorkflowEngine:
        return WorkflowEngine(
            definitions=workflow_store,
            executions=execution_store,
            registry=make_registry(handlers),
        )

    return _make


@pytest.fixture
def closed_matter_workflow() -> WorkflowDefinition:
    """Email the client and open a follow-up task when a matter closes."""
    return WorkflowDefinition(
        id="wf-closed",
        name="Matter closed follow-up",
        is_active=True,
        trigger=TriggerConfig(type="matter.status_changed", filters={"newStatus": "CLOSED"}),
        actions=(
            ActionConfig(
                kind="send_email",
                params={"to": "client@example.com", "subject": "Matter {{matterId}} closed"},
            ),
            ActionConfig(kind="create_task", params={"title": "Archive {{matterId}}"}),
        ),
    )


@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    """Undo `configure_logging` side effects on the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
