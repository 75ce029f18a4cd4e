from django.db import models


class Transaction(models.Model):
    """One wallet ledger entry for a driver"""
    TYPE_DEPOSIT = 'deposit'
    TYPE_WITHDRAWAL = 'withdrawal'
    TYPE_COMMISSION = 'commission'
    TYPE_ADJUSTMENT = 'adjustment'

    TYPE_CHOICES = [
        (TYPE_DEPOSIT, 'Deposit'),
        (TYPE_WITHDRAWAL, 'Withdrawal'),
        (TYPE_COMMISSION, 'Commission'),
        (TYPE_ADJUSTMENT, 'Adjustment'),
    ]

    # Stored as positive amounts, subtracted from the balance
    DEBIT_TYPES = (TYPE_WITHDRAWAL, TYPE_COMMISSION)

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    driver = models.ForeignKey(
        'drivers.Driver',
        on_delete=models.CASCADE,
        related_name='transactions'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    # Signed only for adjustments
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'wallet_transactions'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_type_display()} {self.amount} - driver {self.driver_id} ({self.status})"

    @property
    def signed_amount(self):
        return -self.amount if self.type in self.DEBIT_TYPES else self.amount
