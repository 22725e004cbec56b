"""Unit tests for the execution status state machine.

These tests assert that a record is finalized exactly once and that illegal
transitions fail loudly.
"""

from __future__ import annotations

import pytest

from matter_workflows.engine.errors import IllegalTransitionError
from matter_workflows.engine.state_machine import (
    TERMINAL_STATUSES,
    ExecutionStatus,
    is_terminal,
    transition,
)


@pytest.mark.parametrize("target", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_running_can_reach_every_terminal_status(target: ExecutionStatus) -> None:
    assert transition(current=ExecutionStatus.RUNNING, to=target) is target


@pytest.mark.parametrize("current", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
@pytest.mark.parametrize("target", list(ExecutionStatus))
def test_terminal_statuses_have_no_way_out(current: ExecutionStatus, target: ExecutionStatus) -> None:
    with pytest.raises(IllegalTransitionError) as exc_info:
        transition(current=current, to=target)
    assert str(exc_info.value) == f"Illegal transition: {current.value} -> {target.value}"


def test_running_to_running_is_illegal() -> None:
    with pytest.raises(IllegalTransitionError):
        transition(current=ExecutionStatus.RUNNING, to=ExecutionStatus.RUNNING)


def test_is_terminal() -> None:
    assert not is_terminal(ExecutionStatus.RUNNING)
    assert all(is_terminal(s) for s in TERMINAL_STATUSES)
