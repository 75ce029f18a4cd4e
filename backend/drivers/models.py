from decimal import Decimal

from django.db import models
from django.conf import settings

User = settings.AUTH_USER_MODEL


class Driver(models.Model):
    """Driver account details, approval/availability status and wallet snapshot"""
    STATUS_PENDING = 'pending'
    STATUS_ONLINE = 'online'
    STATUS_OFFLINE = 'offline'
    STATUS_REJECTED = 'rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending Approval'),
        (STATUS_ONLINE, 'Online'),
        (STATUS_OFFLINE, 'Offline'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    # Statuses reachable only after admin approval
    APPROVED_STATUSES = (STATUS_ONLINE, STATUS_OFFLINE)

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver_profile')

    vehicle_number = models.CharField(max_length=20, unique=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Specialization, set at registration or by an admin at approval time
    service_category = models.ForeignKey(
        'catalog.ServiceCategory',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='drivers'
    )
    sub_service = models.ForeignKey(
        'catalog.SubService',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='drivers'
    )

    # Denormalized read of the wallet ledger, maintained by wallet.services
    wallet_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    # Override flag: skips category matching and the wallet gate
    special = models.BooleanField(default=False)

    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'drivers'

    def __str__(self):
        return f"{self.user.username} - {self.vehicle_number}"

    @property
    def is_approved(self):
        return self.status in self.APPROVED_STATUSES
