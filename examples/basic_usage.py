#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the engine components directly:

* load settings from `.env`
* author and activate a "matter closed" workflow
* dispatch a status-change event and print the execution record

State lives under `WORKFLOW_STATE_PATH` (default `workflow_state/`).
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from matter_workflows.config import WorkflowSettings
from matter_workflows.engine import ActionConfig, TriggerConfig, TriggerEvent
from matter_workflows.logging import configure_logging
from matter_workflows.wiring import build_services


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a matter close-out workflow (programmatic example).")
    parser.add_argument("--matter-id", default="M-1001", help="Matter id placed in the event data")
    parser.add_argument("--client-email", default="client@example.com", help="Recipient of the close-out email")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings()
    configure_logging(settings.log_level)
    services = build_services(settings)

    workflow = services.workflows.create(
        name="Matter closed follow-up",
        trigger=TriggerConfig(type="matter.status_changed", filters={"newStatus": "CLOSED"}),
        actions=[
            ActionConfig(
                kind="send_email",
                params={
                    "to": "{{clientEmail}}",
                    "subject": "Matter {{matterId}} is closed",
                    "body": "Thank you for working with us.",
                },
            ),
            ActionConfig(kind="create_task", params={"title": "Archive files for {{matterId}}"}),
        ],
    )
    services.workflows.toggle(workflow.id, True)

    records = services.engine.dispatch(
        TriggerEvent(
            type="matter.status_changed",
            data={"newStatus": "CLOSED", "matterId": args.matter_id, "clientEmail": args.client_email},
        )
    )
    for record in records:
        print(json.dumps(record.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
