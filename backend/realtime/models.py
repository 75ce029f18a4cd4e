from django.db import models


class OrderEvent(models.Model):
    """
    Outbox row for one order event, written in the same transaction as the
    state change it describes. Rows stay undelivered until a worker has sent
    them to every group, so a broker outage delays events instead of losing them.
    """
    groups = models.JSONField(default=list)
    payload = models.JSONField(default=dict)

    created_at = models.DateTimeField(auto_now_add=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)

    class Meta:
        db_table = 'order_events'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['delivered_at', 'created_at'], name='order_events_pending_idx'),
        ]

    def __str__(self):
        state = 'delivered' if self.delivered_at else 'pending'
        return f"{self.payload.get('type')} for order {self.payload.get('order_id')} ({state})"
