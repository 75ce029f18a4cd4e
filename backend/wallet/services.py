"""
Wallet ledger operations.

The ledger (Transaction rows) is the source of truth for a driver's balance.
Driver.wallet_balance is a denormalized copy, moved with F() expressions in
the same database transaction as each completed ledger entry so conditional
updates elsewhere can filter on it.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import Case, DecimalField, F, Sum, When

from drivers.models import Driver
from services.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from wallet.models import Transaction

logger = logging.getLogger(__name__)

_AMOUNT_FIELD = DecimalField(max_digits=14, decimal_places=2)


def get_balance(driver_id: int) -> Decimal:
    """Sum of completed ledger entries for a driver (fresh read)."""
    signed_amount = Case(
        When(type__in=Transaction.DEBIT_TYPES, then=-F("amount")),
        default=F("amount"),
        output_field=_AMOUNT_FIELD,
    )
    total = (
        Transaction.objects
        .filter(driver_id=driver_id, status=Transaction.STATUS_COMPLETED)
        .aggregate(total=Sum(signed_amount, output_field=_AMOUNT_FIELD))["total"]
    )
    return total if total is not None else Decimal("0")


def _validate_amount(tx_type: str, amount) -> Decimal:
    if tx_type not in dict(Transaction.TYPE_CHOICES):
        raise ValidationError(f"Unknown transaction type '{tx_type}'", field="type")
    try:
        amount = Decimal(str(amount))
    except (ArithmeticError, ValueError):
        raise ValidationError("Amount must be a number", field="amount")
    if tx_type == Transaction.TYPE_ADJUSTMENT:
        if amount == 0:
            raise ValidationError("Adjustment amount cannot be zero", field="amount")
    elif amount <= 0:
        raise ValidationError("Amount must be positive", field="amount")
    return amount


@transaction.atomic
def record_transaction(
    driver_id: int,
    tx_type: str,
    amount,
    status: str = Transaction.STATUS_COMPLETED,
    metadata: Optional[Dict[str, Any]] = None,
) -> Transaction:
    """
    Append a ledger entry for a driver.

    Args:
        driver_id: Driver primary key
        tx_type: One of Transaction.TYPE_CHOICES
        amount: Positive amount (signed for adjustments)
        status: Initial status; only completed entries move the balance
        metadata: Free-form context (payment reference, admin note...)

    Returns:
        The created Transaction

    Raises:
        ValidationError: Bad type/amount/status
        NotFoundError: Unknown driver
    """
    amount = _validate_amount(tx_type, amount)
    if status not in dict(Transaction.STATUS_CHOICES):
        raise ValidationError(f"Unknown transaction status '{status}'", field="status")

    entry = Transaction(
        driver_id=driver_id,
        type=tx_type,
        amount=amount,
        status=status,
        metadata=metadata or {},
    )

    if status == Transaction.STATUS_COMPLETED:
        _apply_to_balance(driver_id, entry.signed_amount)
    elif not Driver.objects.filter(pk=driver_id).exists():
        raise NotFoundError("Driver not found", code="driver_not_found")

    entry.save()
    logger.info(
        "Recorded %s of %s for driver %s (status=%s)",
        tx_type, amount, driver_id, status,
    )
    return entry


@transaction.atomic
def complete_transaction(transaction_id: int) -> Transaction:
    """Move a pending ledger entry to completed and apply it to the balance."""
    try:
        entry = Transaction.objects.get(pk=transaction_id)
    except Transaction.DoesNotExist:
        raise NotFoundError("Transaction not found", code="transaction_not_found")

    updated = Transaction.objects.filter(
        pk=transaction_id,
        status=Transaction.STATUS_PENDING,
    ).update(status=Transaction.STATUS_COMPLETED)
    if not updated:
        raise ConflictError(
            f"Transaction is already {entry.status}",
            code="transaction_not_pending",
        )

    _apply_to_balance(entry.driver_id, entry.signed_amount)
    entry.status = Transaction.STATUS_COMPLETED
    return entry


def _apply_to_balance(driver_id: int, delta: Decimal):
    updated = Driver.objects.filter(pk=driver_id).update(
        wallet_balance=F("wallet_balance") + delta
    )
    if not updated:
        raise NotFoundError("Driver not found", code="driver_not_found")
