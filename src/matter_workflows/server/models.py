"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WorkflowCreate(_CamelModel):
    name: str = Field(min_length=1)
    description: str = ""
    trigger: dict[str, Any]
    actions: list[dict[str, Any]] = Field(default_factory=list)


class WorkflowUpdate(_CamelModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
    trigger: dict[str, Any] | None = None
    actions: list[dict[str, Any]] | None = None


class ToggleRequest(_CamelModel):
    is_active: bool = Field(alias="isActive")


class ExecuteRequest(_CamelModel):
    trigger_data: dict[str, Any] = Field(default_factory=dict, alias="triggerData")
    timeout_seconds: float = Field(default=0.0, ge=0, alias="timeoutSeconds")


class EventRequest(_CamelModel):
    type: str = Field(min_length=1)
    entity_type: str | None = Field(default=None, alias="entityType")
    data: dict[str, Any] = Field(default_factory=dict)
