from django.db import models
from django.db.models import Q
from django.conf import settings


class Order(models.Model):
    """One requested delivery/service job and its assignment state"""

    STATUS_NEW = 'new'
    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_PICKED_UP = 'picked_up'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_NEW, 'New'),
        (STATUS_PENDING, 'Pending (offers received)'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_PICKED_UP, 'Picked Up'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Still claimable / accepting offers
    OPEN_STATUSES = (STATUS_NEW, STATUS_PENDING)
    # A driver is attached exactly in these
    ASSIGNED_STATUSES = (STATUS_IN_PROGRESS, STATUS_PICKED_UP, STATUS_DELIVERED)
    TERMINAL_STATUSES = (STATUS_DELIVERED, STATUS_CANCELLED)

    PRICING_AUTO_ACCEPT = 'auto_accept'
    PRICING_CHOOSE_OFFER = 'choose_offer'

    PRICING_CHOICES = [
        (PRICING_AUTO_ACCEPT, 'First driver to claim'),
        (PRICING_CHOOSE_OFFER, 'Customer chooses an offer'),
    ]

    PAYMENT_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('wallet', 'Wallet'),
    ]

    request_number = models.CharField(max_length=40, unique=True)

    # Foreign keys
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='orders'
    )

    driver = models.ForeignKey(
        'drivers.Driver',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders'
    )

    service = models.ForeignKey(
        'catalog.Service',
        on_delete=models.PROTECT,
        related_name='orders'
    )
    sub_service = models.ForeignKey(
        'catalog.SubService',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders'
    )

    # Pickup location
    pickup_address = models.TextField()
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    # Dropoff location
    dropoff_address = models.TextField(blank=True)
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    # Empty means ASAP
    scheduled_for = models.DateTimeField(null=True, blank=True)

    # Opaque pricing inputs
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    driver_share = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_CHOICES, blank=True)
    notes = models.TextField(blank=True)

    # Fixed at creation
    pricing_option = models.CharField(max_length=20, choices=PRICING_CHOICES)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NEW)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    cancelled_by = models.CharField(max_length=10, blank=True)
    cancellation_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status__in=['in_progress', 'picked_up', 'delivered'], driver__isnull=False)
                    | (~Q(status__in=['in_progress', 'picked_up', 'delivered']) & Q(driver__isnull=True))
                ),
                name='order_driver_matches_status',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'pricing_option'], name='orders_status_pricing_idx'),
        ]

    def __str__(self):
        return f"Order {self.request_number} - {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES


class Offer(models.Model):
    """A driver's priced bid on a choose-offer order."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='offers'
    )

    driver = models.ForeignKey(
        'drivers.Driver',
        on_delete=models.CASCADE,
        related_name='offers'
    )

    price = models.DecimalField(max_digits=12, decimal_places=2)

    # None = pending, True = accepted, False = rejected/closed
    accepted = models.BooleanField(null=True, default=None)

    created_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'order_offers'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['order'],
                condition=Q(accepted=True),
                name='one_accepted_offer_per_order'
            ),
            models.UniqueConstraint(
                fields=['order', 'driver'],
                condition=Q(accepted__isnull=True),
                name='one_open_offer_per_driver'
            ),
        ]

    def __str__(self):
        return f"Offer #{self.id} - Order {self.order_id} -> Driver {self.driver_id} ({self.price})"

    @property
    def state(self):
        if self.accepted is None:
            return 'pending'
        return 'accepted' if self.accepted else 'rejected'
