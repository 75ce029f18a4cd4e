"""
Order lifecycle state machine.

    new -> pending -> in_progress -> picked_up -> delivered
    (any non-terminal) -> cancelled

Orders in auto-accept mode skip ``pending``; ``picked_up`` is optional.
The table below only says which moves are legal. Whether a move actually
happens is decided by the conditional update in the lifecycle functions.
"""

from orders.models import Order

from services.exceptions import ConflictError

TRANSITIONS = {
    Order.STATUS_NEW: {Order.STATUS_PENDING, Order.STATUS_IN_PROGRESS, Order.STATUS_CANCELLED},
    Order.STATUS_PENDING: {Order.STATUS_IN_PROGRESS, Order.STATUS_CANCELLED},
    Order.STATUS_IN_PROGRESS: {Order.STATUS_PICKED_UP, Order.STATUS_DELIVERED, Order.STATUS_CANCELLED},
    Order.STATUS_PICKED_UP: {Order.STATUS_DELIVERED, Order.STATUS_CANCELLED},
    Order.STATUS_DELIVERED: set(),
    Order.STATUS_CANCELLED: set(),
}

# Moves a driver makes on an order assigned to them
DRIVER_PROGRESS = frozenset({Order.STATUS_PICKED_UP, Order.STATUS_DELIVERED})

# Statuses a customer may still cancel from (no driver committed yet)
CUSTOMER_CANCELLABLE = (Order.STATUS_NEW, Order.STATUS_PENDING)


def is_terminal(status: str) -> bool:
    return status in Order.TERMINAL_STATUSES


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(from_status, set())


def ensure_transition(order, to_status: str):
    """Raise ConflictError if ``order`` (as last read) cannot move to ``to_status``."""
    if is_terminal(order.status):
        raise ConflictError(
            f"Order is already {order.status}",
            code="order_terminal",
            status=order.status,
        )
    if not can_transition(order.status, to_status):
        raise ConflictError(
            f"Cannot move order from {order.status} to {to_status}",
            code="invalid_transition",
            status=order.status,
        )
