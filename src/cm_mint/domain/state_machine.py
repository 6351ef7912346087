"""MintIntent state machine.

    pending_payment ──► paid ──► activated ──► completed
                          │
                          └────► failed   (deliberately abandoned retries)

Status never regresses; repositories apply transitions as compare-and-set
updates, so each edge is taken at most once per intent.
"""

from src.cm_common.enums import IntentStatus
from src.cm_common.errors import InvalidTransitionError

_ALLOWED: dict[IntentStatus, frozenset[IntentStatus]] = {
    IntentStatus.PENDING_PAYMENT: frozenset({IntentStatus.PAID}),
    IntentStatus.PAID: frozenset({IntentStatus.ACTIVATED, IntentStatus.FAILED}),
    IntentStatus.ACTIVATED: frozenset({IntentStatus.COMPLETED}),
    IntentStatus.COMPLETED: frozenset(),
    IntentStatus.FAILED: frozenset(),
}

FULFILLED = frozenset({IntentStatus.ACTIVATED, IntentStatus.COMPLETED})


def can_transition(current: str, target: str) -> bool:
    return IntentStatus(target) in _ALLOWED[IntentStatus(current)]


def check_transition(intent_id: str, current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(intent_id, current, target)


def is_fulfilled(status: str) -> bool:
    return IntentStatus(status) in FULFILLED
