from __future__ import annotations

from enum import Enum

from .errors import IllegalTransitionError


class ExecutionStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


TERMINAL_STATUSES: frozenset[ExecutionStatus] = frozenset(
    {ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED, ExecutionStatus.PARTIAL}
)

ALLOWED_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
    ExecutionStatus.RUNNING: set(TERMINAL_STATUSES),
    ExecutionStatus.SUCCEEDED: set(),
    ExecutionStatus.FAILED: set(),
    ExecutionStatus.PARTIAL: set(),
}


def is_terminal(status: ExecutionStatus) -> bool:
    return status in TERMINAL_STATUSES


def transition(*, current: ExecutionStatus, to: ExecutionStatus) -> ExecutionStatus:
    """Validate a single status change of an execution record.

    A record starts RUNNING and is finalized exactly once; terminal states
    have no way out.
    """

    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(current=current.value, target=to.value)
    return to
