"""
Choose-offer assignment.

Drivers bid on an order with submit_offer; the customer resolves the bidding
with accept_offer (one winner, every other open offer closed) or turns down
single bids with reject_offer.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from drivers.services import get_driver
from orders.models import Offer, Order
from realtime.notifications import (
    notify_offer_received,
    notify_offers_closed,
    notify_order_assigned,
    notify_order_status_changed,
)
from services.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from services.matching import check_driver_eligibility

from .order_lifecycle import OrderResult, actor_role, get_order_for_actor, load_order

logger = logging.getLogger(__name__)
User = get_user_model()


def _load_offer(offer_id: int) -> Offer:
    try:
        return Offer.objects.select_related("order").get(pk=offer_id)
    except Offer.DoesNotExist:
        raise NotFoundError("Offer not found", code="offer_not_found")


def _validate_price(price) -> Decimal:
    if price in (None, ""):
        raise ValidationError("price is required", field="price")
    try:
        amount = Decimal(str(price))
    except (InvalidOperation, ValueError):
        raise ValidationError("price must be a number", field="price")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("price must be greater than zero", field="price")
    return amount


def _ensure_owner(order: Order, customer):
    if order.customer_id != customer.id:
        raise AuthorizationError("You can only respond to offers on your own orders")


def _ensure_accepts_offers(order: Order):
    if order.pricing_option != Order.PRICING_CHOOSE_OFFER:
        raise ConflictError(
            "This order is first-come; claim it instead",
            code="pricing_option_mismatch",
        )
    if not order.is_open:
        raise ConflictError(
            "Order is no longer accepting offers",
            code="order_not_open",
            status=order.status,
        )


# ===================== Driver Operations =====================

def submit_offer(order_id: int, driver_id: int, price) -> OrderResult:
    """
    Place a priced bid on a choose-offer order.

    The first offer moves the order from ``new`` to ``pending``; later offers
    leave it there. Each driver holds at most one open offer per order.

    Args:
        order_id: Order to bid on
        driver_id: Bidding driver
        price: Positive amount

    Returns:
        OrderResult with the order and the new offer

    Raises:
        ValidationError: Price missing or not positive
        ConflictError: Order not in choose-offer mode, no longer open, or the
            driver already has an open offer on it
        IneligibleError: Driver offline/unapproved or outside the category
    """
    amount = _validate_price(price)

    driver = get_driver(driver_id)
    order = load_order(order_id)
    _ensure_accepts_offers(order)
    check_driver_eligibility(driver, order)

    with transaction.atomic():
        opened = Order.objects.filter(
            pk=order.pk,
            status=Order.STATUS_NEW,
            pricing_option=Order.PRICING_CHOOSE_OFFER,
        ).update(status=Order.STATUS_PENDING)

        if not opened:
            # Touch the row so the offer insert only commits against a still-open order
            still_open = Order.objects.filter(
                pk=order.pk,
                status=Order.STATUS_PENDING,
                pricing_option=Order.PRICING_CHOOSE_OFFER,
            ).update(status=Order.STATUS_PENDING)
            if not still_open:
                raise ConflictError(
                    "Order is no longer accepting offers",
                    code="order_not_open",
                )

        try:
            with transaction.atomic():
                offer = Offer.objects.create(order=order, driver=driver, price=amount)
        except IntegrityError:
            raise ConflictError(
                "You already have an open offer on this order",
                code="duplicate_offer",
            )

        previous_status = order.status
        order.status = Order.STATUS_PENDING

        notify_offer_received(order, offer)
        if opened:
            notify_order_status_changed(order, Order.STATUS_NEW, Order.STATUS_PENDING)

    logger.info(
        "Driver %s offered %s on order %s (%s -> %s)",
        driver.id, amount, order.id, previous_status, order.status,
    )
    return OrderResult(
        success=True,
        order=order,
        offer=offer,
        message="Offer submitted. Waiting for the customer to choose.",
    )


# ===================== Customer Operations =====================

def accept_offer(offer_id: int, customer) -> OrderResult:
    """
    Accept one offer: assign its driver and close every other open offer.

    Runs as one atomic unit. The order update only matches while the order is
    still open with no driver, so of several concurrent acceptances on the
    same order exactly one commits.

    Raises:
        NotFoundError: Unknown offer
        AuthorizationError: Caller does not own the order
        ConflictError: Offer already resolved, or the order left new/pending
    """
    offer = _load_offer(offer_id)
    order = offer.order
    _ensure_owner(order, customer)

    if offer.accepted is not None:
        raise ConflictError(
            f"Offer was already {offer.state}",
            code="offer_not_pending",
            offer_state=offer.state,
        )
    if not order.is_open:
        raise ConflictError(
            "Order is no longer accepting offers",
            code="order_not_open",
            status=order.status,
        )

    now = timezone.now()
    with transaction.atomic():
        assigned = Order.objects.filter(
            pk=order.pk,
            status__in=Order.OPEN_STATUSES,
            pricing_option=Order.PRICING_CHOOSE_OFFER,
            driver__isnull=True,
        ).update(driver_id=offer.driver_id, status=Order.STATUS_IN_PROGRESS, assigned_at=now)
        if not assigned:
            raise ConflictError(
                "Order was assigned or cancelled in the meantime",
                code="order_not_open",
            )

        won = Offer.objects.filter(
            pk=offer.pk,
            accepted__isnull=True,
        ).update(accepted=True, responded_at=now)
        if not won:
            # Rolls back the order assignment above
            raise ConflictError(
                "Offer was withdrawn or resolved in the meantime",
                code="offer_not_pending",
            )

        losers = Offer.objects.filter(order_id=order.pk, accepted__isnull=True)
        loser_driver_ids = list(losers.values_list("driver_id", flat=True))
        closed = losers.update(accepted=False, responded_at=now)

        previous_status = order.status
        order.driver_id = offer.driver_id
        order.status = Order.STATUS_IN_PROGRESS
        order.assigned_at = now
        offer.accepted = True
        offer.responded_at = now

        notify_order_assigned(order)
        notify_order_status_changed(order, previous_status, Order.STATUS_IN_PROGRESS)
        notify_offers_closed(order, loser_driver_ids, "Customer chose another offer")

    logger.info(
        "Customer %s accepted offer %s on order %s (driver %s); %d other offer(s) closed",
        customer.id, offer.id, order.id, offer.driver_id, closed,
    )
    return OrderResult(
        success=True,
        order=order,
        offer=offer,
        message="Offer accepted. Your driver is on the way.",
        extra={"closed_offers": closed},
    )


@transaction.atomic
def reject_offer(offer_id: int, customer) -> OrderResult:
    """
    Reject a single offer. The order itself is left untouched.

    Raises:
        NotFoundError: Unknown offer
        AuthorizationError: Caller does not own the order
        ConflictError: Offer already resolved or the order is no longer open
    """
    offer = _load_offer(offer_id)
    order = offer.order
    _ensure_owner(order, customer)

    if offer.accepted is not None:
        raise ConflictError(
            f"Offer was already {offer.state}",
            code="offer_not_pending",
            offer_state=offer.state,
        )

    now = timezone.now()
    rejected = Offer.objects.filter(
        pk=offer.pk,
        accepted__isnull=True,
        order__status__in=Order.OPEN_STATUSES,
    ).update(accepted=False, responded_at=now)
    if not rejected:
        raise ConflictError(
            "Offer can no longer be rejected",
            code="offer_not_pending",
        )

    offer.accepted = False
    offer.responded_at = now
    notify_offers_closed(order, [offer.driver_id], "Customer declined your offer")

    logger.info("Customer %s rejected offer %s on order %s", customer.id, offer.id, order.id)
    return OrderResult(success=True, order=order, offer=offer, message="Offer rejected")


# ===================== Queries =====================

def list_offers(order_id: int, actor) -> List[Offer]:
    """
    Offers on an order. The owner and admins see every offer, a driver only
    sees their own.
    """
    order = get_order_for_actor(order_id, actor)
    offers = Offer.objects.filter(order=order).select_related("driver__user")
    if order.customer_id == actor.id or actor_role(actor) == User.ROLE_ADMIN:
        return list(offers)
    return list(offers.filter(driver__user_id=actor.id))
