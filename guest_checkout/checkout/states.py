from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class CheckoutState(str, Enum):
    IDLE = "idle"
    CART_READY = "cart_ready"
    FORM_VALID = "form_valid"
    PREPARING = "preparing"
    EXTERNAL_ORDER_CREATED = "external_order_created"
    AWAITING_RETURN = "awaiting_return"
    RESUMED = "resumed"
    CAPTURING = "capturing"
    CAPTURED = "captured"
    PLACING_ORDER = "placing_order"
    COMPLETED = "completed"
    ERRORED = "errored"
    ABANDONED = "abandoned"


S = CheckoutState

# Before the redirect.
SUBMIT_BRANCH: FrozenSet[CheckoutState] = frozenset(
    {S.IDLE, S.CART_READY, S.FORM_VALID, S.PREPARING, S.EXTERNAL_ORDER_CREATED, S.AWAITING_RETURN}
)
# After the shopper comes back from the payment provider.
RESUME_BRANCH: FrozenSet[CheckoutState] = frozenset(
    {S.RESUMED, S.CAPTURING, S.CAPTURED, S.PLACING_ORDER, S.COMPLETED}
)

TRANSITIONS: Dict[CheckoutState, FrozenSet[CheckoutState]] = {
    S.IDLE: frozenset({S.CART_READY, S.ABANDONED, S.RESUMED, S.ERRORED}),
    S.CART_READY: frozenset({S.FORM_VALID, S.ERRORED}),
    S.FORM_VALID: frozenset({S.PREPARING, S.ERRORED}),
    S.PREPARING: frozenset({S.EXTERNAL_ORDER_CREATED, S.ERRORED}),
    S.EXTERNAL_ORDER_CREATED: frozenset({S.AWAITING_RETURN, S.ERRORED}),
    S.AWAITING_RETURN: frozenset(),
    S.RESUMED: frozenset({S.CAPTURING, S.COMPLETED, S.ABANDONED, S.ERRORED}),
    S.CAPTURING: frozenset({S.CAPTURED, S.ERRORED}),
    S.CAPTURED: frozenset({S.PLACING_ORDER, S.ERRORED}),
    S.PLACING_ORDER: frozenset({S.COMPLETED, S.ERRORED}),
    S.COMPLETED: frozenset(),
    # Only a fresh cart load leaves ERRORED, and only from the submit branch (see CheckoutOrchestrator.load).
    S.ERRORED: frozenset({S.CART_READY, S.ABANDONED}),
    S.ABANDONED: frozenset(),
}


class InvalidTransition(RuntimeError):
    def __init__(self, current: CheckoutState, target: CheckoutState) -> None:
        super().__init__(f"Illegal checkout transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


def can_transition(current: CheckoutState, target: CheckoutState) -> bool:
    return target in TRANSITIONS[current]
