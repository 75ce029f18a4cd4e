"""Celery tasks for realtime event delivery."""

import logging
from datetime import timedelta

from asgiref.sync import async_to_sync
from celery import shared_task
from channels.layers import get_channel_layer
from django.conf import settings
from django.db.models import F
from django.utils import timezone

from .models import OrderEvent

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    acks_late=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=settings.ORDER_EVENT_MAX_RETRIES,
)
def deliver_order_event(self, event_id):
    """
    Fan an outbox event out to its channel-layer groups.

    Delivery is at-least-once: the row is marked delivered only after every
    group_send returned, and any failure retries the whole fan-out.
    Consumers must tolerate duplicates.
    """
    event = OrderEvent.objects.filter(pk=event_id, delivered_at__isnull=True).first()
    if event is None:
        return 0

    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available for %s", event.payload.get("type"))
        return 0

    try:
        for group in event.groups:
            async_to_sync(channel_layer.group_send)(group, event.payload)
    except Exception as exc:
        OrderEvent.objects.filter(pk=event.pk).update(
            attempts=F("attempts") + 1, last_error=str(exc)
        )
        raise

    OrderEvent.objects.filter(pk=event.pk, delivered_at__isnull=True).update(
        delivered_at=timezone.now(), attempts=F("attempts") + 1
    )
    logger.debug(
        "Delivered %s for order %s to %d group(s)",
        event.payload.get("type"), event.payload.get("order_id"), len(event.groups),
    )
    return len(event.groups)


@shared_task
def redeliver_pending_events(older_than=None, limit=200):
    """
    Re-queue outbox events nobody delivered, e.g. because the broker was down
    when the transaction committed or the worker died before finishing.

    Runs periodically from celery beat.
    """
    if older_than is None:
        older_than = settings.ORDER_EVENT_REDELIVER_AFTER
    cutoff = timezone.now() - timedelta(seconds=older_than)

    pending = list(
        OrderEvent.objects
        .filter(delivered_at__isnull=True, created_at__lte=cutoff)
        .values_list("id", flat=True)[:limit]
    )
    queued = 0
    for event_id in pending:
        try:
            deliver_order_event.delay(event_id)
        except Exception:
            # Broker still unavailable; the rows stay for the next run
            logger.exception("Could not re-queue order event %s", event_id)
            break
        queued += 1

    if pending:
        logger.info("Re-queued %d of %d pending order event(s)", queued, len(pending))
    return queued
