"""
Driver eligibility for orders.

Category matching compares structured capabilities (category id, sub-service
id) instead of free-text names. A driver without a sub-service covers the whole
category; an order without a sub-service accepts any driver of its category.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db.models import Q, QuerySet

from drivers.models import Driver
from orders.models import Order
from services.exceptions import IneligibleError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capability:
    """What a driver can serve, or what an order requires."""
    category_id: Optional[int]
    sub_service_id: Optional[int] = None

    @classmethod
    def of_driver(cls, driver: Driver) -> "Capability":
        return cls(driver.service_category_id, driver.sub_service_id)

    @classmethod
    def required_by(cls, order: Order) -> "Capability":
        return cls(order.service.category_id, order.sub_service_id)

    def covers(self, required: "Capability") -> bool:
        if self.category_id is None or self.category_id != required.category_id:
            return False
        if self.sub_service_id is None or required.sub_service_id is None:
            return True
        return self.sub_service_id == required.sub_service_id


_STATUS_REASONS = {
    Driver.STATUS_PENDING: ("pending_approval", "Your account is awaiting admin approval"),
    Driver.STATUS_REJECTED: ("rejected", "Your driver application was rejected"),
    Driver.STATUS_OFFLINE: ("offline", "Go online before taking orders"),
}


def check_driver_eligibility(driver: Driver, order: Order):
    """
    Raise IneligibleError with a specific reason unless ``driver`` may take ``order``.

    Eligible = online AND (capability covers the order OR special).
    Reads are snapshot reads; the assignment itself is guarded by the
    conditional update on the order row.
    """
    if driver.status != Driver.STATUS_ONLINE:
        reason, message = _STATUS_REASONS.get(
            driver.status, ("offline", "Go online before taking orders")
        )
        raise IneligibleError(message, reason=reason)

    if driver.special:
        return

    if not Capability.of_driver(driver).covers(Capability.required_by(order)):
        logger.info(
            "Driver %s does not serve category of order %s", driver.id, order.id
        )
        raise IneligibleError(
            "This order is outside your service category",
            reason="category_mismatch",
        )


def eligible_drivers_for_order(order: Order) -> QuerySet:
    """Online drivers whose capability covers the order, plus special drivers."""
    category_id = order.service.category_id
    category_match = Q(service_category_id=category_id)
    if order.sub_service_id is not None:
        category_match &= Q(sub_service__isnull=True) | Q(sub_service_id=order.sub_service_id)

    return Driver.objects.filter(status=Driver.STATUS_ONLINE).filter(
        category_match | Q(special=True)
    )


def orders_covered_by(driver: Driver) -> QuerySet:
    """Open orders a driver's capability covers (every open order for special drivers)."""
    orders = Order.objects.filter(status__in=Order.OPEN_STATUSES)
    if driver.special:
        return orders
    if driver.service_category_id is None:
        return orders.none()

    orders = orders.filter(service__category_id=driver.service_category_id)
    if driver.sub_service_id is not None:
        orders = orders.filter(
            Q(sub_service__isnull=True) | Q(sub_service_id=driver.sub_service_id)
        )
    return orders
