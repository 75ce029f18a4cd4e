"""
Core order lifecycle operations.

This module contains the business logic for creating orders, claiming them in
auto-accept mode, moving them through delivery and cancelling them.

Every mutation is a single conditional UPDATE whose WHERE clause states the
expected prior status (and driver). The row count it returns is the only
success signal: zero rows means another request changed the order first and
the caller gets a ConflictError. No in-process locks are held.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from catalog.models import Service, SubService
from common.utils import generate_request_number
from drivers.models import Driver
from drivers.services import get_driver
from orders.models import Offer, Order
from realtime.notifications import (
    notify_order_assigned,
    notify_order_available,
    notify_order_cancelled,
    notify_order_status_changed,
)
from services.exceptions import (
    AlreadyClaimedError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from services.matching import (
    check_driver_eligibility,
    eligible_drivers_for_order,
    orders_covered_by,
)

from .state_machine import CUSTOMER_CANCELLABLE, DRIVER_PROGRESS, ensure_transition

logger = logging.getLogger(__name__)
User = get_user_model()

REQUEST_NUMBER_ATTEMPTS = 5


@dataclass
class OrderResult:
    """Result object for order operations."""
    success: bool
    order: Optional[Order] = None
    offer: Optional[Offer] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


# ===================== Helpers =====================

def load_order(order_id: int) -> Order:
    try:
        return Order.objects.select_related("service").get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFoundError("Order not found", code="order_not_found")


def actor_role(user) -> str:
    if user.is_platform_admin:
        return User.ROLE_ADMIN
    return user.role


def _decimal(value, field: str, required: bool = False) -> Optional[Decimal]:
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    return amount


def _validate_order_input(
    pickup_address: str,
    pricing_option: str,
    total_amount,
    driver_share,
    scheduled_for: Optional[datetime],
    payment_method: str,
) -> Dict[str, Any]:
    if not (pickup_address or "").strip():
        raise ValidationError("Pickup address is required", field="pickup_address")

    if pricing_option not in dict(Order.PRICING_CHOICES):
        raise ValidationError(
            "pricing_option must be auto_accept or choose_offer",
            field="pricing_option",
        )

    if payment_method and payment_method not in dict(Order.PAYMENT_CHOICES):
        raise ValidationError("Unknown payment method", field="payment_method")

    total = _decimal(total_amount, "total_amount")
    share = _decimal(driver_share, "driver_share")
    if total is not None and total < 0:
        raise ValidationError("total_amount cannot be negative", field="total_amount")
    if share is not None and share < 0:
        raise ValidationError("driver_share cannot be negative", field="driver_share")
    if total is not None and share is not None and share > total:
        raise ValidationError("driver_share cannot exceed total_amount", field="driver_share")

    if scheduled_for is not None:
        # Naive datetimes are taken as local time in TIME_ZONE
        if timezone.is_naive(scheduled_for):
            scheduled_for = timezone.make_aware(scheduled_for)
        if scheduled_for < timezone.now():
            raise ValidationError("scheduled_for must be in the future", field="scheduled_for")

    return {"total_amount": total, "driver_share": share, "scheduled_for": scheduled_for}


# ===================== Customer Operations =====================

def create_order(
    customer,
    service_id: int,
    pricing_option: str,
    pickup_address: str,
    sub_service_id: Optional[int] = None,
    dropoff_address: str = "",
    pickup_latitude=None,
    pickup_longitude=None,
    dropoff_latitude=None,
    dropoff_longitude=None,
    scheduled_for: Optional[datetime] = None,
    total_amount=None,
    driver_share=None,
    payment_method: str = "",
    notes: str = "",
) -> OrderResult:
    """
    Create a new order in status ``new`` and announce it to eligible drivers.

    Args:
        customer: User placing the order (role customer)
        service_id: Requested catalog Service
        pricing_option: auto_accept or choose_offer, fixed for the order's life
        pickup_address: Human-readable pickup address (required)
        sub_service_id: Optional SubService of the service's category

    Returns:
        OrderResult with the created order

    Raises:
        ValidationError: Malformed input (checked before any store access)
        AuthorizationError: Caller is not a customer
    """
    cleaned = _validate_order_input(
        pickup_address, pricing_option, total_amount, driver_share,
        scheduled_for, payment_method,
    )

    if customer.role != User.ROLE_CUSTOMER:
        raise AuthorizationError("Only customers can create orders")

    service = Service.objects.filter(pk=service_id, is_active=True).first()
    if service is None:
        raise ValidationError("Unknown service", field="service")

    sub_service = None
    if sub_service_id is not None:
        sub_service = SubService.objects.filter(pk=sub_service_id).first()
        if sub_service is None or sub_service.category_id != service.category_id:
            raise ValidationError(
                "Sub-service does not belong to the service's category",
                field="sub_service",
            )

    fields = dict(
        customer=customer,
        service=service,
        sub_service=sub_service,
        pricing_option=pricing_option,
        pickup_address=pickup_address.strip(),
        pickup_latitude=pickup_latitude,
        pickup_longitude=pickup_longitude,
        dropoff_address=dropoff_address or "",
        dropoff_latitude=dropoff_latitude,
        dropoff_longitude=dropoff_longitude,
        payment_method=payment_method or "",
        notes=notes or "",
        status=Order.STATUS_NEW,
        **cleaned,
    )

    with transaction.atomic():
        order = None
        for attempt in range(REQUEST_NUMBER_ATTEMPTS):
            try:
                with transaction.atomic():
                    order = Order.objects.create(
                        request_number=generate_request_number(), **fields
                    )
                break
            except IntegrityError:
                logger.warning("Request number collision (attempt %d)", attempt + 1)
        if order is None:
            raise ConflictError(
                "Could not allocate a request number, please retry",
                code="request_number_exhausted",
            )

        driver_ids = list(eligible_drivers_for_order(order).values_list("id", flat=True))
        notify_order_available(order, driver_ids)

    logger.info(
        "Order %s (%s) created by customer %s; %d eligible driver(s) online",
        order.id, order.pricing_option, customer.id, len(driver_ids),
    )
    return OrderResult(
        success=True,
        order=order,
        message="Order created. Notifying available drivers...",
        extra={"driver_candidates": len(driver_ids)},
    )


@transaction.atomic
def cancel_order(order_id: int, actor, reason: str = "") -> OrderResult:
    """
    Cancel an order.

    Customers may cancel their own order while it is new/pending; admins may
    cancel any non-terminal order. Open offers are closed (accepted=false),
    an assigned driver is released.

    Raises:
        NotFoundError: Unknown order
        AuthorizationError: Actor is neither the owner nor an admin
        ConflictError: Order terminal, already committed to a driver, or changed concurrently
    """
    order = load_order(order_id)

    role = actor_role(actor)
    if role == User.ROLE_CUSTOMER:
        if order.customer_id != actor.id:
            raise AuthorizationError("You can only cancel your own orders")
    elif role != User.ROLE_ADMIN:
        raise AuthorizationError("Only the customer or an admin can cancel an order")

    ensure_transition(order, Order.STATUS_CANCELLED)
    if role == User.ROLE_CUSTOMER and order.status not in CUSTOMER_CANCELLABLE:
        raise ConflictError(
            "A driver has already committed to this order; contact support to cancel",
            code="driver_committed",
            status=order.status,
        )

    now = timezone.now()
    previous_status = order.status
    previous_driver_id = order.driver_id

    updated = Order.objects.filter(
        pk=order.pk,
        status=previous_status,
        driver_id=previous_driver_id,
    ).update(
        status=Order.STATUS_CANCELLED,
        driver=None,
        cancelled_at=now,
        cancelled_by=role,
        cancellation_reason=reason or "",
    )
    if not updated:
        raise ConflictError(
            "Order changed while cancelling; refresh and try again",
            code="order_changed",
        )

    open_offers = Offer.objects.filter(order_id=order.pk, accepted__isnull=True)
    offer_driver_ids = set(open_offers.values_list("driver_id", flat=True))
    closed = open_offers.update(accepted=False, responded_at=now)

    order.status = Order.STATUS_CANCELLED
    order.driver = None
    order.cancelled_at = now
    order.cancelled_by = role
    order.cancellation_reason = reason or ""

    involved = set(offer_driver_ids)
    if previous_driver_id:
        involved.add(previous_driver_id)
    notify_order_cancelled(order, role, involved)

    logger.info(
        "Order %s cancelled by %s %s from %s (%d offer(s) closed)",
        order.id, role, actor.id, previous_status, closed,
    )
    return OrderResult(
        success=True,
        order=order,
        message="Order cancelled successfully",
        extra={"was_assigned": previous_driver_id is not None, "closed_offers": closed},
    )


# ===================== Driver Operations =====================

@transaction.atomic
def claim_order(order_id: int, driver_id: int) -> OrderResult:
    """
    Claim an auto-accept order (new -> in_progress with driver set).

    Exactly one of several concurrent claims succeeds: the UPDATE only
    matches while the row is still ``new`` with no driver.

    Raises:
        NotFoundError: Unknown order or driver
        ConflictError: Order not in auto-accept mode or not claimable
        AlreadyClaimedError: Another driver's claim committed first
        IneligibleError: Driver offline/unapproved or outside the category
    """
    driver = get_driver(driver_id)
    order = load_order(order_id)

    if order.pricing_option != Order.PRICING_AUTO_ACCEPT:
        raise ConflictError(
            "This order takes offers; submit an offer instead",
            code="pricing_option_mismatch",
        )
    if order.status in Order.ASSIGNED_STATUSES:
        raise AlreadyClaimedError("Order is no longer available")
    ensure_transition(order, Order.STATUS_IN_PROGRESS)

    check_driver_eligibility(driver, order)

    now = timezone.now()
    claimed = Order.objects.filter(
        pk=order.pk,
        status=Order.STATUS_NEW,
        pricing_option=Order.PRICING_AUTO_ACCEPT,
        driver__isnull=True,
    ).update(driver=driver, status=Order.STATUS_IN_PROGRESS, assigned_at=now)

    if not claimed:
        logger.info("Driver %s lost claim race for order %s", driver.id, order.id)
        current = Order.objects.filter(pk=order.pk).values_list("status", flat=True).first()
        if current == Order.STATUS_CANCELLED:
            raise ConflictError("Order was cancelled", code="order_terminal", status=current)
        raise AlreadyClaimedError("Order is no longer available")

    order.driver = driver
    order.status = Order.STATUS_IN_PROGRESS
    order.assigned_at = now

    notify_order_assigned(order)
    notify_order_status_changed(order, Order.STATUS_NEW, Order.STATUS_IN_PROGRESS)

    logger.info("Order %s claimed by driver %s", order.id, driver.id)
    return OrderResult(
        success=True,
        order=order,
        message="Order claimed successfully! Navigate to pickup location.",
    )


@transaction.atomic
def advance_order_status(order_id: int, driver_id: int, to_status: str) -> OrderResult:
    """
    Move an assigned order forward: in_progress -> picked_up -> delivered
    (picked_up may be skipped).

    Raises:
        ValidationError: Target status is not a driver progress status
        AuthorizationError: Order is not assigned to this driver
        ConflictError: Transition not allowed from the current status, or raced
    """
    if to_status not in DRIVER_PROGRESS:
        raise ValidationError(
            "status must be picked_up or delivered", field="status"
        )

    driver = get_driver(driver_id)
    order = load_order(order_id)
    if order.driver_id != driver.id:
        raise AuthorizationError("This order is not assigned to you")

    ensure_transition(order, to_status)

    now = timezone.now()
    changes = {"status": to_status}
    if to_status == Order.STATUS_PICKED_UP:
        changes["picked_up_at"] = now
    else:
        changes["delivered_at"] = now

    previous_status = order.status
    updated = Order.objects.filter(
        pk=order.pk,
        driver_id=driver.id,
        status=previous_status,
    ).update(**changes)
    if not updated:
        raise ConflictError(
            "Order changed in the meantime; refresh and try again",
            code="order_changed",
        )

    for field, value in changes.items():
        setattr(order, field, value)

    if to_status == Order.STATUS_DELIVERED:
        User.objects.filter(pk=order.customer_id).update(
            completed_orders=F("completed_orders") + 1
        )

    notify_order_status_changed(order, previous_status, to_status)

    logger.info(
        "Order %s moved %s -> %s by driver %s",
        order.id, previous_status, to_status, driver.id,
    )
    return OrderResult(
        success=True,
        order=order,
        message=f"Order marked as {order.get_status_display().lower()}",
    )


# ===================== Queries =====================

def get_order_for_actor(order_id: int, actor) -> Order:
    """
    Fetch an order the actor may see: the owner, the assigned driver,
    a driver eligible for it while it is open, or an admin.
    """
    order = load_order(order_id)
    role = actor_role(actor)

    if role == User.ROLE_ADMIN or order.customer_id == actor.id:
        return order

    if role == User.ROLE_DRIVER:
        driver = Driver.objects.filter(user_id=actor.id).first()
        if driver is not None:
            if order.driver_id == driver.id:
                return order
            if order.is_open and orders_covered_by(driver).filter(pk=order.pk).exists():
                return order

    raise AuthorizationError("You cannot view this order")


def list_customer_orders(customer, active_only: bool = False):
    orders = Order.objects.filter(customer=customer).select_related("service", "driver__user")
    if active_only:
        orders = orders.exclude(status__in=Order.TERMINAL_STATUSES)
    return orders


def list_available_orders(driver_id: int) -> List[Order]:
    """
    Open orders this driver may claim or bid on. Empty while the driver is
    not online. ``has_open_offer`` is set on each order.
    """
    driver = get_driver(driver_id)
    if driver.status != Driver.STATUS_ONLINE:
        return []

    orders = list(
        orders_covered_by(driver)
        .select_related("service", "sub_service")
        .order_by("created_at")
    )
    offered = set(
        Offer.objects.filter(
            driver=driver,
            accepted__isnull=True,
            order_id__in=[order.id for order in orders],
        ).values_list("order_id", flat=True)
    )
    for order in orders:
        order.has_open_offer = order.id in offered
    return orders


def list_driver_orders(driver_id: int, active_only: bool = True):
    orders = Order.objects.filter(driver_id=driver_id).select_related("service", "customer")
    if active_only:
        orders = orders.exclude(status__in=Order.TERMINAL_STATUSES)
    return orders
