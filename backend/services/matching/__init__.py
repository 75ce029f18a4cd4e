"""
Driver matching service.

This module handles:
    - Structural capability matching between drivers and orders
    - The eligibility predicate shared by both assignment modes
    - Finding eligible drivers for an order and open orders for a driver
"""

from .eligibility import (
    Capability,
    check_driver_eligibility,
    eligible_drivers_for_order,
    orders_covered_by,
)

__all__ = [
    "Capability",
    "check_driver_eligibility",
    "eligible_drivers_for_order",
    "orders_covered_by",
]
