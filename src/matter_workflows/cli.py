"""CLI entrypoint for authoring and running workflows against local state."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from matter_workflows import __version__
from matter_workflows.config import WorkflowSettings
from matter_workflows.engine.deadline import execute_with_deadline
from matter_workflows.engine.errors import (
    DefinitionNotFound,
    InvalidWorkflowDefinition,
    PersistenceError,
)
from matter_workflows.engine.models import (
    ExecutionRecord,
    TriggerConfig,
    WorkflowDefinition,
    actions_from_json,
)
from matter_workflows.engine.state_machine import ExecutionStatus
from matter_workflows.engine.triggers import TriggerEvent
from matter_workflows.logging import configure_logging
from matter_workflows.wiring import build_services

logger = logging.getLogger(__name__)


def _parse_data(value: str | None) -> dict[str, object]:
    if not value:
        return {}
    raw = json.loads(value)
    if not isinstance(raw, dict):
        raise InvalidWorkflowDefinition("--data must be a JSON object")
    return raw


def _print_workflow(workflow: WorkflowDefinition, executions: int | None = None) -> None:
    state = "active" if workflow.is_active else "inactive"
    line = (
        f"{workflow.id}  [{state}]  {workflow.name}  "
        f"trigger={workflow.trigger.type} actions={len(workflow.actions)}"
    )
    if executions is not None:
        line += f" executions={executions}"
    print(line)


def _print_execution(record: ExecutionRecord) -> None:
    print(f"Execution {record.id}: {record.status.value}")
    for idx, step in enumerate(record.step_results, start=1):
        suffix = f" ({step.error})" if step.error else ""
        print(f"  {idx}. {step.action_kind}: {step.outcome.value}{suffix}")
    if record.error:
        print(f"  error: {record.error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matter-workflows",
        description="Author and run workflow automations against local state",
    )
    parser.add_argument("--version", action="version", version=f"matter-workflows {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List stored workflows with their execution counts")
    subparsers.add_parser("stats", help="Show workflow and execution totals")

    create = subparsers.add_parser("create", help="Create a workflow from a JSON file")
    create.add_argument(
        "--file",
        required=True,
        help="JSON file with 'name', optional 'description', 'trigger' and 'actions'",
    )
    create.add_argument("--activate", action="store_true", help="Activate right away")

    for name, help_text in (
        ("activate", "Activate a workflow so live events can fire it"),
        ("deactivate", "Deactivate a workflow (manual execution still works)"),
        ("delete", "Delete a workflow and its execution history"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--id", dest="workflow_id", required=True, help="Workflow id")

    execute = subparsers.add_parser("execute", help="Run a workflow manually")
    execute.add_argument("--id", dest="workflow_id", required=True, help="Workflow id")
    execute.add_argument("--data", default=None, help="Trigger data as a JSON object")
    execute.add_argument(
        "--timeout-seconds",
        type=float,
        default=0.0,
        help="Mark the run FAILED if it takes longer (0 means no timeout)",
    )

    dispatch = subparsers.add_parser("dispatch", help="Submit an event to all active workflows")
    dispatch.add_argument("--type", dest="event_type", required=True, help="Event type")
    dispatch.add_argument("--entity-type", default=None, help="Optional entity type")
    dispatch.add_argument("--data", default=None, help="Event data as a JSON object")

    executions = subparsers.add_parser("executions", help="Show recent executions of a workflow")
    executions.add_argument("--id", dest="workflow_id", required=True, help="Workflow id")
    executions.add_argument("--limit", type=int, default=50, help="Maximum records to show")

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        from matter_workflows.server import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port)
        return 0

    services = build_services(settings)

    try:
        if args.command == "list":
            counts = services.workflows.execution_counts()
            for workflow in services.workflows.list():
                _print_workflow(workflow, counts.get(workflow.id, 0))
            return 0

        if args.command == "stats":
            stats = services.workflows.stats()
            print(f"Workflows:  {stats.total_workflows} ({stats.active_workflows} active)")
            print(f"Executions: {stats.total_executions} ({stats.recent_executions} in the last 24h)")
            return 0

        if args.command == "create":
            raw = json.loads(Path(args.file).read_text(encoding="utf-8"))
            if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
                raise InvalidWorkflowDefinition("Workflow file needs an object with a 'name'")
            workflow = services.workflows.create(
                name=raw["name"],
                description=str(raw.get("description") or ""),
                trigger=TriggerConfig.from_json(raw.get("trigger")),
                actions=actions_from_json(raw.get("actions")),
            )
            if args.activate:
                workflow = services.workflows.toggle(workflow.id, True)
            _print_workflow(workflow)
            return 0

        if args.command in {"activate", "deactivate"}:
            workflow = services.workflows.toggle(args.workflow_id, args.command == "activate")
            _print_workflow(workflow)
            return 0

        if args.command == "delete":
            services.workflows.delete(args.workflow_id)
            print(f"Deleted workflow {args.workflow_id}")
            return 0

        if args.command == "execute":
            record = execute_with_deadline(
                services.engine,
                args.workflow_id,
                _parse_data(args.data),
                timeout_seconds=args.timeout_seconds,
            )
            _print_execution(record)
            # Exit codes are designed to be CI-friendly.
            return 0 if record.status is ExecutionStatus.SUCCEEDED else 4

        if args.command == "dispatch":
            event = TriggerEvent(
                type=args.event_type,
                data=_parse_data(args.data),
                entity_type=args.entity_type,
            )
            records = services.engine.dispatch(event)
            if not records:
                print(f"No active workflow matched event {event.type!r}")
                return 0
            for record in records:
                _print_execution(record)
            return 0 if all(r.status is ExecutionStatus.SUCCEEDED for r in records) else 4

        if args.command == "executions":
            for record in services.workflows.executions(args.workflow_id, limit=args.limit):
                finished = record.finished_at.isoformat() if record.finished_at else "-"
                print(
                    f"{record.id}  {record.status.value:<9}  started={record.started_at.isoformat()} "
                    f"finished={finished} steps={len(record.step_results)}"
                )
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except DefinitionNotFound as e:
        print(str(e), file=sys.stderr)
        return 3

    except (InvalidWorkflowDefinition, json.JSONDecodeError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2

    except PersistenceError as e:
        logger.error("Persistence failure", extra={"error": str(e)})
        print(f"Persistence failure: {e}", file=sys.stderr)
        return 5

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
