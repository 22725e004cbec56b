"""Local stand-in for the practice-management record layer.

The engine only sees :class:`~matter_workflows.engine.handlers.RecordGateway`.
This implementation keeps records, tasks, notes and tags in one JSON file so
the CLI and server are usable without the real data layer.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from matter_workflows.engine.errors import ActionHandlerError, PersistenceError


@dataclass
class JsonRecordGateway:
    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"records": {}, "tags": {}}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise PersistenceError(f"Unexpected content in {self.path}: expected an object")
        raw.setdefault("records", {})
        raw.setdefault("tags", {})
        return raw

    def _save_unlocked(self, state: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(state, indent=2, ensure_ascii=False, default=str) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def records(self, entity_type: str) -> dict[str, dict[str, Any]]:
        with self._lock:
            return dict(self._load_unlocked()["records"].get(entity_type, {}))

    def tags(self, entity_type: str, entity_id: str) -> list[str]:
        with self._lock:
            return list(self._load_unlocked()["tags"].get(f"{entity_type}:{entity_id}", []))

    def create_record(self, entity_type: str, data: Mapping[str, object]) -> str:
        with self._lock:
            state = self._load_unlocked()
            record_id = uuid.uuid4().hex
            state["records"].setdefault(entity_type, {})[record_id] = dict(data)
            self._save_unlocked(state)
            return record_id

    def update_record(self, entity_type: str, record_id: str, data: Mapping[str, object]) -> None:
        with self._lock:
            state = self._load_unlocked()
            table = state["records"].get(entity_type, {})
            if record_id not in table:
                raise ActionHandlerError(f"{entity_type} record not found: {record_id}")
            table[record_id].update(dict(data))
            self._save_unlocked(state)

    def delete_record(self, entity_type: str, record_id: str) -> None:
        with self._lock:
            state = self._load_unlocked()
            table = state["records"].get(entity_type, {})
            if table.pop(record_id, None) is None:
                raise ActionHandlerError(f"{entity_type} record not found: {record_id}")
            self._save_unlocked(state)

    def create_task(self, data: Mapping[str, object]) -> str:
        return self.create_record("TASK", {"type": "TASK", **dict(data)})

    def add_note(self, entity_type: str, entity_id: str, content: str) -> str:
        return self.create_record(
            "NOTE", {"entityType": entity_type, "entityId": entity_id, "content": content}
        )

    def set_tag(self, entity_type: str, entity_id: str, tag: str, *, present: bool) -> None:
        with self._lock:
            state = self._load_unlocked()
            key = f"{entity_type}:{entity_id}"
            current: list[str] = state["tags"].setdefault(key, [])
            if present and tag not in current:
                current.append(tag)
            if not present and tag in current:
                current.remove(tag)
            self._save_unlocked(state)
