"""
Order assignment engine.

This module handles:
    - Order creation and validation
    - First-come claims on auto-accept orders
    - Offer submission and resolution on choose-offer orders
    - Delivery progress and cancellation
"""

from .order_lifecycle import (
    OrderResult,
    create_order,
    cancel_order,
    claim_order,
    advance_order_status,
    get_order_for_actor,
    list_customer_orders,
    list_available_orders,
    list_driver_orders,
)
from .offers import (
    submit_offer,
    accept_offer,
    reject_offer,
    list_offers,
)

__all__ = [
    "OrderResult",
    "create_order",
    "cancel_order",
    "claim_order",
    "advance_order_status",
    "get_order_for_actor",
    "list_customer_orders",
    "list_available_orders",
    "list_driver_orders",
    "submit_offer",
    "accept_offer",
    "reject_offer",
    "list_offers",
]
