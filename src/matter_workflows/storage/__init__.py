"""Local JSON-file persistence for workflow definitions, executions and records."""

from matter_workflows.storage.json_store import JsonExecutionStore, JsonWorkflowStore
from matter_workflows.storage.records import JsonRecordGateway

__all__ = ["JsonExecutionStore", "JsonRecordGateway", "JsonWorkflowStore"]
