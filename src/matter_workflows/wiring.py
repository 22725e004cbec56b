"""Builds the engine and its collaborators from settings."""

from __future__ import annotations

from dataclasses import dataclass

from matter_workflows.config import WorkflowSettings
from matter_workflows.engine.handlers import (
    LoggingMailer,
    Mailer,
    RecordGateway,
    build_default_registry,
)
from matter_workflows.engine.service import WorkflowService
from matter_workflows.engine.workflow_engine import WorkflowEngine
from matter_workflows.storage import JsonExecutionStore, JsonRecordGateway, JsonWorkflowStore


@dataclass(frozen=True, slots=True)
class Services:
    engine: WorkflowEngine
    workflows: WorkflowService
    executions: JsonExecutionStore


def build_services(
    settings: WorkflowSettings,
    *,
    gateway: RecordGateway | None = None,
    mailer: Mailer | None = None,
) -> Services:
    workflow_store = JsonWorkflowStore(settings.workflows_file)
    execution_store = JsonExecutionStore(settings.executions_file)
    registry = build_default_registry(
        gateway=gateway or JsonRecordGateway(settings.state_path / "records.json"),
        mailer=mailer or LoggingMailer(),
        http_timeout_seconds=settings.http_timeout_seconds,
        max_delay_seconds=settings.max_delay_seconds,
    )
    return Services(
        engine=WorkflowEngine(
            definitions=workflow_store,
            executions=execution_store,
            registry=registry,
        ),
        workflows=WorkflowService(
            workflows=workflow_store,
            executions=execution_store,
            registry=registry,
        ),
        executions=execution_store,
    )
