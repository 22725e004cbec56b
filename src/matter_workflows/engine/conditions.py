"""Condition expressions and their evaluator.

Conditions are a closed, recursive variant: a :class:`Leaf` comparison or an
:class:`And`/:class:`Or`/:class:`Not` composite. Nothing here evaluates
arbitrary code; the operator set is enumerable.

Evaluation fails closed. Any problem resolving a field or comparing values is
raised internally as :class:`ConditionEvaluationError` and turned into
``False`` at the public boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import ConditionEvaluationError, InvalidWorkflowDefinition

logger = logging.getLogger(__name__)


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    IS_EMPTY = "is_empty"

    @classmethod
    def parse(cls, raw: object) -> Operator:
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise InvalidWorkflowDefinition(f"Condition operator must be a string, got {raw!r}")
        try:
            return cls(raw.strip().lower().replace("-", "_"))
        except ValueError:
            raise InvalidWorkflowDefinition(f"Unknown condition operator: {raw!r}") from None


@dataclass(frozen=True, slots=True)
class Leaf:
    field: str
    operator: Operator
    value: object = None


@dataclass(frozen=True, slots=True)
class And:
    operands: tuple[ConditionExpr, ...]


@dataclass(frozen=True, slots=True)
class Or:
    operands: tuple[ConditionExpr, ...]


@dataclass(frozen=True, slots=True)
class Not:
    operand: ConditionExpr


ConditionExpr = Union[Leaf, And, Or, Not]

_MISSING = object()

# Raised by comparisons on odd inputs (huge ints, deep nesting); all mean "false".
_FAIL_CLOSED = (ConditionEvaluationError, ArithmeticError, TypeError, ValueError, RecursionError)


# --- wire format -----------------------------------------------------------


def condition_to_json(expr: ConditionExpr) -> dict[str, object]:
    if isinstance(expr, Leaf):
        return {"field": expr.field, "operator": expr.operator.value, "value": expr.value}
    if isinstance(expr, And):
        return {"op": "AND", "operands": [condition_to_json(o) for o in expr.operands]}
    if isinstance(expr, Or):
        return {"op": "OR", "operands": [condition_to_json(o) for o in expr.operands]}
    if isinstance(expr, Not):
        return {"op": "NOT", "operands": [condition_to_json(expr.operand)]}
    raise TypeError(f"Not a condition expression: {expr!r}")


def condition_from_json(obj: object) -> ConditionExpr:
    """Decode a condition from its stored form.

    Arity is validated here so that well-formed definitions can never hold an
    empty AND/OR or a NOT with more than one operand.
    """

    if not isinstance(obj, Mapping):
        raise InvalidWorkflowDefinition(f"Condition must be an object, got {obj!r}")

    if "op" in obj:
        op_raw = obj.get("op")
        op = op_raw.upper() if isinstance(op_raw, str) else op_raw
        raw_operands = obj.get("operands")
        if not isinstance(raw_operands, list):
            raise InvalidWorkflowDefinition(f"Composite condition {op!r} needs an operands list")
        operands = tuple(condition_from_json(o) for o in raw_operands)
        if op in {"AND", "OR"}:
            if not operands:
                raise InvalidWorkflowDefinition(f"{op} condition needs at least one operand")
            return And(operands) if op == "AND" else Or(operands)
        if op == "NOT":
            if len(operands) != 1:
                raise InvalidWorkflowDefinition("NOT condition needs exactly one operand")
            return Not(operands[0])
        raise InvalidWorkflowDefinition(f"Unknown composite operator: {op_raw!r}")

    field_raw = obj.get("field")
    if not isinstance(field_raw, str) or not field_raw.strip():
        raise InvalidWorkflowDefinition("Leaf condition needs a non-empty 'field'")
    return Leaf(
        field=field_raw.strip(),
        operator=Operator.parse(obj.get("operator")),
        value=obj.get("value"),
    )


# --- field resolution ------------------------------------------------------


def resolve_path(data: Mapping[str, object], path: str) -> object:
    """Resolve a dotted path such as ``matter.client.name`` or ``items.0.id``.

    Returns the ``_MISSING`` sentinel when a segment does not exist. A path
    with empty segments is malformed and raises.
    """

    segments = path.split(".")
    if not path or any(not s.strip() for s in segments):
        raise ConditionEvaluationError(f"Malformed field path: {path!r}")

    current: object = data
    for segment in segments:
        key = segment.strip()
        if isinstance(current, Mapping):
            if key not in current:
                return _MISSING
            current = current[key]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return current


def lookup(data: Mapping[str, object], path: str) -> tuple[bool, object]:
    """Public wrapper around :func:`resolve_path`: ``(found, value)``."""

    value = resolve_path(data, path)
    if value is _MISSING:
        return False, None
    return True, value


# --- operators -------------------------------------------------------------


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equals(left: object, right: object) -> bool:
    # No coercion: "5" != 5 and True != 1.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _to_number(value: object) -> float:
    try:
        if _is_number(value):
            return float(value)  # type: ignore[arg-type]
        if isinstance(value, str):
            return float(value.strip())
    except (OverflowError, ValueError):
        pass
    raise ConditionEvaluationError(f"Cannot compare {value!r} as a number")


def _compare(left: object, right: object) -> int:
    if _is_number(left) or _is_number(right):
        a, b = _to_number(left), _to_number(right)
    elif isinstance(left, str) and isinstance(right, str):
        a, b = left, right  # type: ignore[assignment]
    else:
        raise ConditionEvaluationError(f"Cannot order {left!r} and {right!r}")
    return (a > b) - (a < b)


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def _evaluate_leaf(leaf: Leaf, data: Mapping[str, object]) -> bool:
    value = resolve_path(data, leaf.field)
    op = leaf.operator

    if op is Operator.IS_EMPTY:
        return value is _MISSING or _is_empty(value)
    if value is _MISSING:
        return False

    if op is Operator.EQUALS:
        return _strict_equals(value, leaf.value)
    if op is Operator.NOT_EQUALS:
        return not _strict_equals(value, leaf.value)
    if op is Operator.GREATER_THAN:
        return _compare(value, leaf.value) > 0
    if op is Operator.LESS_THAN:
        return _compare(value, leaf.value) < 0
    if op is Operator.CONTAINS:
        if value is None or leaf.value is None:
            return False
        return str(leaf.value) in str(value)
    raise ConditionEvaluationError(f"Unsupported operator: {op!r}")


def _evaluate(expr: ConditionExpr, data: Mapping[str, object]) -> bool:
    if isinstance(expr, Leaf):
        return _evaluate_leaf(expr, data)
    if isinstance(expr, And):
        if not expr.operands:
            raise ConditionEvaluationError("AND without operands")
        return all(_evaluate(o, data) for o in expr.operands)
    if isinstance(expr, Or):
        if not expr.operands:
            raise ConditionEvaluationError("OR without operands")
        return any(_evaluate(o, data) for o in expr.operands)
    if isinstance(expr, Not):
        return not _evaluate(expr.operand, data)
    raise ConditionEvaluationError(f"Not a condition expression: {expr!r}")


def evaluate(expr: ConditionExpr | None, data: Mapping[str, object]) -> bool:
    """Evaluate ``expr`` against ``data``; ``None`` means "always proceed"."""

    if expr is None:
        return True
    try:
        return _evaluate(expr, data)
    except _FAIL_CLOSED as e:
        logger.warning("Condition evaluated to false", extra={"reason": str(e) or type(e).__name__})
        return False
