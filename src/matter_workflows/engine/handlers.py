"""Built-in action handlers.

Handlers are thin adapters: the side effects themselves belong to the
practice-management data layer (:class:`RecordGateway`) and to the mail
transport (:class:`Mailer`). The only effects implemented here are an
outbound HTTP call and a bounded delay.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import requests

from .actions import ActionOutcome, ActionRegistry, ExecutionContext
from .errors import ActionHandlerError
from .models import ActionKind

logger = logging.getLogger(__name__)


class RecordGateway(Protocol):
    """CRUD capability over CRM/matter records."""

    def create_record(self, entity_type: str, data: Mapping[str, object]) -> str: ...

    def update_record(self, entity_type: str, record_id: str, data: Mapping[str, object]) -> None: ...

    def delete_record(self, entity_type: str, record_id: str) -> None: ...

    def create_task(self, data: Mapping[str, object]) -> str: ...

    def add_note(self, entity_type: str, entity_id: str, content: str) -> str: ...

    def set_tag(self, entity_type: str, entity_id: str, tag: str, *, present: bool) -> None: ...


class Mailer(Protocol):
    def send(self, *, to: str, subject: str, body: str) -> None: ...


def _required_str(params: Mapping[str, object], key: str) -> str:
    value = params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ActionHandlerError(f"Missing required parameter: {key}")
    return str(value)


def _data(params: Mapping[str, object]) -> dict[str, object]:
    raw = params.get("data", {})
    if not isinstance(raw, Mapping):
        raise ActionHandlerError("Parameter 'data' must be an object")
    return dict(raw)


def created_id_key(entity_type: str) -> str:
    """Output variable for a created record, e.g. ``DEAL`` -> ``createdDealId``."""

    return f"created{entity_type.strip().lower().capitalize()}Id"


@dataclass(frozen=True, slots=True)
class CreateRecord:
    gateway: RecordGateway

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        entity_type = _required_str(params, "entityType").upper()
        record_id = self.gateway.create_record(entity_type, _data(params))
        return ActionOutcome.ok(**{created_id_key(entity_type): record_id})


@dataclass(frozen=True, slots=True)
class UpdateRecord:
    gateway: RecordGateway

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        entity_type = _required_str(params, "entityType").upper()
        record_id = _required_str(params, "recordId")
        self.gateway.update_record(entity_type, record_id, _data(params))
        return ActionOutcome.ok()


@dataclass(frozen=True, slots=True)
class DeleteRecord:
    gateway: RecordGateway

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        entity_type = _required_str(params, "entityType").upper()
        self.gateway.delete_record(entity_type, _required_str(params, "recordId"))
        return ActionOutcome.ok()


@dataclass(frozen=True, slots=True)
class CreateTask:
    gateway: RecordGateway

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        _required_str(params, "title")
        task_id = self.gateway.create_task(dict(params))
        return ActionOutcome.ok(createdTaskId=task_id)


@dataclass(frozen=True, slots=True)
class AddNote:
    gateway: RecordGateway

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        note_id = self.gateway.add_note(
            _required_str(params, "entityType").upper(),
            _required_str(params, "entityId"),
            _required_str(params, "content"),
        )
        return ActionOutcome.ok(createdNoteId=note_id)


@dataclass(frozen=True, slots=True)
class SetTag:
    gateway: RecordGateway
    present: bool

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        self.gateway.set_tag(
            _required_str(params, "entityType").upper(),
            _required_str(params, "entityId"),
            _required_str(params, "tag"),
            present=self.present,
        )
        return ActionOutcome.ok()


@dataclass(frozen=True, slots=True)
class SendEmail:
    mailer: Mailer

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        to = _required_str(params, "to")
        subject = str(params.get("subject") or "")
        body = str(params.get("body") or "")
        self.mailer.send(to=to, subject=subject, body=body)
        logger.info(
            "Workflow email sent",
            extra={"execution_id": context.execution_id, "to": to, "subject": subject},
        )
        return ActionOutcome.ok(
            lastEmailSent={
                "to": to,
                "subject": subject,
                "body": body,
                "sentAt": datetime.now(tz=UTC).isoformat(),
            }
        )


@dataclass(slots=True)
class HttpRequest:
    timeout_seconds: float = 10.0
    session: requests.Session = field(default_factory=requests.Session)

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        url = _required_str(params, "url")
        method = str(params.get("method") or "GET").upper()
        headers_raw = params.get("headers") or {}
        if not isinstance(headers_raw, Mapping):
            raise ActionHandlerError("Parameter 'headers' must be an object")
        headers = {str(k): str(v) for k, v in headers_raw.items()}
        body = params.get("body")

        try:
            resp = self.session.request(
                method,
                url,
                headers=headers,
                json=body,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            raise ActionHandlerError(f"HTTP request failed: {e}") from e

        try:
            data: object = resp.json()
        except ValueError:
            data = resp.text

        response = {"status": resp.status_code, "data": data}
        if not 200 <= resp.status_code < 300:
            return ActionOutcome(
                success=False,
                output={"lastHttpResponse": response},
                error=f"HTTP request failed: {resp.status_code}",
            )
        return ActionOutcome.ok(lastHttpResponse=response)


@dataclass(frozen=True, slots=True)
class Delay:
    max_seconds: float = 300.0
    sleep: Callable[[float], None] = time.sleep

    def invoke(self, params: Mapping[str, object], context: ExecutionContext) -> ActionOutcome:
        try:
            seconds = float(params.get("seconds") or 0)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise ActionHandlerError(f"Invalid delay: {params.get('seconds')!r}") from e
        seconds = min(max(seconds, 0.0), self.max_seconds)
        if seconds > 0:
            self.sleep(seconds)
        return ActionOutcome.ok()


def build_default_registry(
    *,
    gateway: RecordGateway,
    mailer: Mailer,
    http_timeout_seconds: float = 10.0,
    max_delay_seconds: float = 300.0,
) -> ActionRegistry:
    registry = ActionRegistry()
    registry.register(ActionKind.CREATE_RECORD.value, CreateRecord(gateway))
    registry.register(ActionKind.UPDATE_RECORD.value, UpdateRecord(gateway))
    registry.register(ActionKind.DELETE_RECORD.value, DeleteRecord(gateway))
    registry.register(ActionKind.CREATE_TASK.value, CreateTask(gateway))
    registry.register(ActionKind.ADD_NOTE.value, AddNote(gateway))
    registry.register(ActionKind.ADD_TAG.value, SetTag(gateway, present=True))
    registry.register(ActionKind.REMOVE_TAG.value, SetTag(gateway, present=False))
    registry.register(ActionKind.SEND_EMAIL.value, SendEmail(mailer))
    registry.register(ActionKind.HTTP_REQUEST.value, HttpRequest(timeout_seconds=http_timeout_seconds))
    registry.register(ActionKind.DELAY.value, Delay(max_seconds=max_delay_seconds))
    return registry


class LoggingMailer:
    """Mail transport that only logs; used when no real transport is wired."""

    def send(self, *, to: str, subject: str, body: str) -> None:
        logger.info("Email (not delivered)", extra={"to": to, "subject": subject, "chars": len(body)})
