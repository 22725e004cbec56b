"""Unit tests for condition expressions.

Evaluation is fail-closed: malformed paths and incomparable values resolve
to False instead of raising.
"""

from __future__ import annotations

import pytest

from matter_workflows.engine.conditions import (
    And,
    Leaf,
    Not,
    Operator,
    Or,
    condition_from_json,
    condition_to_json,
    evaluate,
    lookup,
)
from matter_workflows.engine.errors import InvalidWorkflowDefinition

DATA = {
    "newStatus": "CLOSED",
    "amount": 1500,
    "notes": "   ",
    "tags": [],
    "matter": {"client": {"name": "Acme Corp"}, "items": [{"id": "i-1"}]},
    "flag": True,
}


def test_missing_field_is_false_for_equals_and_true_for_is_empty() -> None:
    assert evaluate(Leaf("missing", Operator.EQUALS, "x"), DATA) is False
    assert evaluate(Leaf("missing", Operator.IS_EMPTY), DATA) is True


def test_none_expression_always_proceeds() -> None:
    assert evaluate(None, {}) is True


@pytest.mark.parametrize(
    ("field", "value", "expected"),
    [
        ("newStatus", "CLOSED", True),
        ("newStatus", "closed", False),
        ("amount", 1500.0, True),
        ("amount", "1500", False),
        ("flag", 1, False),
        ("flag", True, True),
    ],
)
def test_equals_is_strict(field: str, value: object, expected: bool) -> None:
    assert evaluate(Leaf(field, Operator.EQUALS, value), DATA) is expected
    assert evaluate(Leaf(field, Operator.NOT_EQUALS, value), DATA) is (not expected)


def test_ordering_operators() -> None:
    assert evaluate(Leaf("amount", Operator.GREATER_THAN, 1000), DATA) is True
    assert evaluate(Leaf("amount", Operator.LESS_THAN, "2000"), DATA) is True
    assert evaluate(Leaf("newStatus", Operator.GREATER_THAN, "A"), DATA) is True
    # Incomparable operands fail closed.
    assert evaluate(Leaf("matter", Operator.GREATER_THAN, 1), DATA) is False
    assert evaluate(Leaf("newStatus", Operator.LESS_THAN, 5), DATA) is False


def test_contains_and_is_empty() -> None:
    assert evaluate(Leaf("matter.client.name", Operator.CONTAINS, "Acme"), DATA) is True
    assert evaluate(Leaf("matter.client.name", Operator.CONTAINS, "Globex"), DATA) is False
    assert evaluate(Leaf("notes", Operator.IS_EMPTY), DATA) is True
    assert evaluate(Leaf("tags", Operator.IS_EMPTY), DATA) is True
    assert evaluate(Leaf("amount", Operator.IS_EMPTY), DATA) is False


def test_nested_paths_and_list_indexes() -> None:
    assert lookup(DATA, "matter.items.0.id") == (True, "i-1")
    assert lookup(DATA, "matter.items.3.id") == (False, None)
    assert lookup(DATA, "amount.value") == (False, None)


def test_malformed_path_evaluates_false() -> None:
    assert evaluate(Leaf("matter..client", Operator.EQUALS, "x"), DATA) is False
    assert evaluate(Leaf("matter..client", Operator.IS_EMPTY), DATA) is False


def test_huge_integers_evaluate_false() -> None:
    data = {"amount": 10**400}

    assert evaluate(Leaf("amount", Operator.GREATER_THAN, 1), data) is False
    assert evaluate(Leaf("amount", Operator.LESS_THAN, 5), data) is False
    assert evaluate(Not(Leaf("amount", Operator.LESS_THAN, 5)), data) is False


def test_unexpected_errors_evaluate_false() -> None:
    class Unprintable:
        def __str__(self) -> str:
            raise ValueError("cannot render")

    data = {"blob": Unprintable(), "items": []}

    assert evaluate(Leaf("blob", Operator.CONTAINS, "x"), data) is False
    # A failing operand fails the whole expression, even if another would hold.
    either = Or((Leaf("blob", Operator.CONTAINS, "x"), Leaf("items", Operator.IS_EMPTY)))
    assert evaluate(either, data) is False


def test_composites() -> None:
    closed = Leaf("newStatus", Operator.EQUALS, "CLOSED")
    big = Leaf("amount", Operator.GREATER_THAN, 10_000)

    assert evaluate(And((closed, big)), DATA) is False
    assert evaluate(Or((closed, big)), DATA) is True
    assert evaluate(Not(big), DATA) is True
    assert evaluate(And((closed, Not(big))), DATA) is True


def test_evaluation_is_pure() -> None:
    expr = Or((Leaf("missing", Operator.IS_EMPTY), Leaf("amount", Operator.LESS_THAN, 1)))
    before = dict(DATA)

    assert evaluate(expr, DATA) == evaluate(expr, DATA)
    assert DATA == before


def test_wire_format_roundtrip() -> None:
    expr = And(
        (
            Leaf("newStatus", Operator.EQUALS, "CLOSED"),
            Not(Or((Leaf("amount", Operator.LESS_THAN, 10), Leaf("notes", Operator.IS_EMPTY)))),
        )
    )
    encoded = condition_to_json(expr)

    assert encoded["op"] == "AND"
    assert condition_from_json(encoded) == expr


def test_operator_names_accept_hyphens() -> None:
    leaf = condition_from_json({"field": "notes", "operator": "is-empty"})
    assert leaf == Leaf("notes", Operator.IS_EMPTY, None)


@pytest.mark.parametrize(
    "raw",
    [
        {"op": "AND", "operands": []},
        {"op": "NOT", "operands": [{"field": "a", "operator": "equals"}] * 2},
        {"op": "XOR", "operands": [{"field": "a", "operator": "equals"}]},
        {"field": "a", "operator": "matches"},
        {"field": "", "operator": "equals"},
        "newStatus == CLOSED",
    ],
)
def test_malformed_conditions_are_rejected(raw: object) -> None:
    with pytest.raises(InvalidWorkflowDefinition):
        condition_from_json(raw)
