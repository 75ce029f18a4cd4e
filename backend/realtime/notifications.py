"""
Notification helpers for order events.

The assignment engine calls these after a state change. Each helper builds a
JSON payload and writes it to the OrderEvent outbox inside the surrounding
transaction, so clients never hear about a change that was rolled back and
never miss one that committed. The delivery task is queued after commit;
if the broker is down the row waits for redeliver_pending_events. Delivery
failures are logged and never undo the state transition.

Groups:
    - user_<user_id>     the customer (and any other account) personal group
    - driver_<driver_id> a driver's personal group
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, Iterable, Optional

from django.db import transaction

from .models import OrderEvent
from .tasks import deliver_order_event

logger = logging.getLogger(__name__)


def customer_group(order) -> str:
    return f"user_{order.customer_id}"


def driver_group(driver_id) -> str:
    return f"driver_{driver_id}"


def _order_payload(event_type: str, order, extra: Dict[str, Any] = None) -> Dict[str, Any]:
    return {
        "type": event_type,
        "order_id": order.id,
        "request_number": order.request_number,
        "status": order.status,
        **(extra or {}),
    }


def _enqueue(event_id, event_type):
    try:
        deliver_order_event.delay(event_id)
    except Exception:
        logger.exception(
            "Failed to queue %s event %s; left in outbox for redelivery", event_type, event_id
        )


def publish(groups: Iterable[str], payload: Dict[str, Any]) -> bool:
    """
    Store ``payload`` for ``groups`` in the outbox and queue its delivery
    after the current transaction commits.

    Returns False when there is nobody to notify.
    """
    groups = sorted({group for group in groups if group})
    if not groups:
        return False

    logger.debug("WS -> %s: %s", groups, payload)
    event = OrderEvent.objects.create(groups=groups, payload=payload)
    transaction.on_commit(partial(_enqueue, event.id, payload.get("type")))
    return True


# ---------------------- Order Events ----------------------

def notify_order_available(order, driver_ids: Iterable[int]) -> bool:
    """Announce a new order to eligible online drivers."""
    payload = _order_payload("order_available", order, {
        "pricing_option": order.pricing_option,
        "service_id": order.service_id,
        "pickup_address": order.pickup_address,
        "dropoff_address": order.dropoff_address,
    })
    return publish((driver_group(driver_id) for driver_id in driver_ids), payload)


def notify_order_assigned(order) -> bool:
    """OrderAssigned{orderId, driverId} to the customer and the winning driver."""
    payload = _order_payload("order_assigned", order, {"driver_id": order.driver_id})
    return publish([customer_group(order), driver_group(order.driver_id)], payload)


def notify_offer_received(order, offer) -> bool:
    """OfferReceived{orderId, offerId} to the customer."""
    payload = _order_payload("offer_received", order, {
        "offer_id": offer.id,
        "driver_id": offer.driver_id,
        "price": str(offer.price),
    })
    return publish([customer_group(order)], payload)


def notify_offers_closed(order, driver_ids: Iterable[int], message: str = "") -> bool:
    """Tell drivers whose offers were rejected or closed."""
    payload = _order_payload("offer_closed", order, {"message": message})
    return publish((driver_group(driver_id) for driver_id in driver_ids), payload)


def notify_order_status_changed(order, from_status: str, to_status: str) -> bool:
    """OrderStatusChanged{orderId, from, to} to the customer and assigned driver."""
    payload = _order_payload("order_status_changed", order, {
        "from": from_status,
        "to": to_status,
    })
    groups = [customer_group(order)]
    if order.driver_id:
        groups.append(driver_group(order.driver_id))
    return publish(groups, payload)


def notify_order_cancelled(
    order,
    actor: str,
    driver_ids: Optional[Iterable[int]] = None,
) -> bool:
    """OrderCancelled{orderId, actor} to the customer and every involved driver."""
    payload = _order_payload("order_cancelled", order, {
        "actor": actor,
        "reason": order.cancellation_reason,
    })
    groups = [customer_group(order)]
    groups.extend(driver_group(driver_id) for driver_id in (driver_ids or ()))
    return publish(groups, payload)
