"""Order state machine.

Lifecycle: PENDING -> AWAITING -> COMPLETE, with CANCELLED reachable from
every non-terminal state. AWAITING may fall back to PENDING when a
re-placement leaves items unplaced.
"""

from src.db.models import OrderStatus


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid order state transition.

    Attributes:
        current_state: The current state of the order.
        attempted_state: The state that was attempted.
        allowed_transitions: List of valid transition targets from current state.
    """

    code = "E-4002"

    def __init__(
        self,
        current_state: OrderStatus,
        attempted_state: OrderStatus,
        allowed_transitions: list[OrderStatus],
    ) -> None:
        self.current_state = current_state
        self.attempted_state = attempted_state
        self.allowed_transitions = allowed_transitions
        allowed_str = ", ".join(s.value for s in allowed_transitions) or "none (terminal)"
        super().__init__(
            f"Cannot transition from '{current_state.value}' to '{attempted_state.value}'. "
            f"Allowed transitions: {allowed_str}"
        )


# Valid state transitions for the order lifecycle
VALID_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.AWAITING, OrderStatus.CANCELLED],
    OrderStatus.AWAITING: [
        OrderStatus.PENDING,
        OrderStatus.COMPLETE,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.COMPLETE: [OrderStatus.CANCELLED],
    OrderStatus.CANCELLED: [],  # terminal
}


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    """Check if a status transition is allowed. Same-state is a no-op and allowed."""
    current = OrderStatus(current)
    target = OrderStatus(target)
    if current == target:
        return True
    return target in VALID_TRANSITIONS.get(current, [])


def ensure_transition(current: OrderStatus | str, target: OrderStatus | str) -> None:
    """Raise InvalidStateTransition unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        current = OrderStatus(current)
        raise InvalidStateTransition(
            current, OrderStatus(target), VALID_TRANSITIONS.get(current, [])
        )
