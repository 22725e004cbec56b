from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .conditions import Leaf, Operator, evaluate, lookup
from .errors import ConditionEvaluationError, InvalidWorkflowDefinition
from .models import WorkflowDefinition


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """Something that happened in the system (e.g. ``matter.status_changed``).

    Events are signals only; matching them never performs work.
    """

    type: str
    data: dict[str, object] = field(default_factory=dict)
    entity_type: str | None = None


def _filter_condition(key: str, expected: object) -> Leaf:
    if isinstance(expected, Mapping) and "operator" in expected:
        try:
            op = Operator.parse(expected.get("operator"))
        except InvalidWorkflowDefinition:
            # Unknown predicate: compare against the raw mapping, which cannot match.
            return Leaf(field=key, operator=Operator.EQUALS, value=dict(expected))
        return Leaf(field=key, operator=op, value=expected.get("value"))
    return Leaf(field=key, operator=Operator.EQUALS, value=expected)


def filters_match(filters: Mapping[str, object], data: Mapping[str, object]) -> bool:
    """Implicit AND over all filters; a filter key missing from ``data`` never matches."""

    for key, expected in filters.items():
        # Absence fails closed here, even for emptiness predicates.
        try:
            found, _ = lookup(data, key)
        except ConditionEvaluationError:
            return False
        if not found:
            return False
        if not evaluate(_filter_condition(key, expected), data):
            return False
    return True


def workflow_matches(workflow: WorkflowDefinition, event: TriggerEvent) -> bool:
    if not workflow.is_active:
        return False
    trigger = workflow.trigger
    if trigger.type != event.type:
        return False
    if event.entity_type is not None and trigger.entity_type != event.entity_type:
        return False
    return filters_match(trigger.filters, event.data)


def match(event: TriggerEvent, candidates: Iterable[WorkflowDefinition]) -> list[WorkflowDefinition]:
    """Select the candidates that ``event`` fires, preserving candidate order."""

    return [w for w in candidates if workflow_matches(w, event)]
