"""
Driver registry operations: availability toggle and admin approval.

Every status change is a conditional update whose WHERE clause carries the
precondition (approved status, wallet threshold), so a concurrent change
between the read and the write makes the update match zero rows instead of
applying on stale data.
"""

import logging
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from catalog.models import ServiceCategory, SubService
from drivers.models import Driver
from services.exceptions import (
    ConflictError,
    IneligibleError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from wallet.services import get_balance

logger = logging.getLogger(__name__)


def get_driver(driver_id: int) -> Driver:
    try:
        return Driver.objects.select_related("user").get(pk=driver_id)
    except Driver.DoesNotExist:
        raise NotFoundError("Driver not found", code="driver_not_found")


def minimum_wallet_balance():
    return settings.MIN_DRIVER_WALLET_BALANCE


def _refuse_unapproved(driver: Driver):
    if driver.status == Driver.STATUS_PENDING:
        raise IneligibleError("Your account is awaiting admin approval", reason="pending_approval")
    if driver.status == Driver.STATUS_REJECTED:
        raise IneligibleError("Your driver application was rejected", reason="rejected")


# DRIVER STATUS UPDATE
@transaction.atomic
def set_driver_online(driver_id: int) -> Driver:
    """
    Put an approved driver online.

    The wallet gate is evaluated against a fresh ledger read and repeated in
    the update's WHERE clause on the denormalized balance, so a balance drop
    that lands between the two makes the update miss.

    Raises:
        NotFoundError: Unknown driver
        IneligibleError: Driver not approved
        InsufficientBalanceError: Balance below threshold and not special
    """
    driver = get_driver(driver_id)
    _refuse_unapproved(driver)

    threshold = minimum_wallet_balance()
    balance = get_balance(driver.id)
    if not driver.special and balance < threshold:
        logger.info(
            "Driver %s refused online: balance %s < %s", driver.id, balance, threshold
        )
        raise InsufficientBalanceError(balance, threshold)

    updated = Driver.objects.filter(
        Q(special=True) | Q(wallet_balance__gte=threshold),
        pk=driver.id,
        status__in=Driver.APPROVED_STATUSES,
    ).update(status=Driver.STATUS_ONLINE)

    if not updated:
        # Something moved between the read and the write; report what
        current = get_driver(driver.id)
        _refuse_unapproved(current)
        raise InsufficientBalanceError(current.wallet_balance, threshold)

    driver.status = Driver.STATUS_ONLINE
    logger.info("Driver %s is online", driver.id)
    return driver


def set_driver_offline(driver_id: int) -> Driver:
    """Take an approved driver offline. Never gated by the wallet."""
    driver = get_driver(driver_id)
    updated = Driver.objects.filter(
        pk=driver.id,
        status__in=Driver.APPROVED_STATUSES,
    ).update(status=Driver.STATUS_OFFLINE)

    if not updated:
        _refuse_unapproved(get_driver(driver.id))

    driver.status = Driver.STATUS_OFFLINE
    logger.info("Driver %s is offline", driver.id)
    return driver


def resolve_specialization(service_category_id, sub_service_id):
    """Look up a driver specialization, deriving the category from the sub-service if needed."""
    category = None
    sub_service = None
    if service_category_id is not None:
        category = ServiceCategory.objects.filter(pk=service_category_id).first()
        if category is None:
            raise ValidationError("Unknown service category", field="service_category")
    if sub_service_id is not None:
        sub_service = SubService.objects.filter(pk=sub_service_id).first()
        if sub_service is None:
            raise ValidationError("Unknown sub-service", field="sub_service")
        if category is None:
            category = sub_service.category
        elif sub_service.category_id != category.id:
            raise ValidationError(
                "Sub-service does not belong to the service category",
                field="sub_service",
            )
    return category, sub_service


# ADMIN ACTIONS
def approve_driver(
    driver_id: int,
    service_category_id: Optional[int] = None,
    sub_service_id: Optional[int] = None,
) -> Driver:
    """
    Approve a pending driver (pending -> offline), optionally setting the
    specialization. Not subject to the wallet gate.
    """
    category, sub_service = resolve_specialization(service_category_id, sub_service_id)
    driver = get_driver(driver_id)

    changes = {"status": Driver.STATUS_OFFLINE, "approved_at": timezone.now()}
    if category is not None:
        changes["service_category"] = category
        changes["sub_service"] = sub_service

    updated = Driver.objects.filter(
        pk=driver.id, status=Driver.STATUS_PENDING
    ).update(**changes)
    if not updated:
        raise ConflictError(
            f"Driver is {get_driver(driver.id).status}, not pending approval",
            code="driver_not_pending",
        )

    logger.info("Driver %s approved", driver.id)
    return get_driver(driver.id)


def reject_driver(driver_id: int) -> Driver:
    """Reject a pending driver application (pending -> rejected)."""
    driver = get_driver(driver_id)
    updated = Driver.objects.filter(
        pk=driver.id, status=Driver.STATUS_PENDING
    ).update(status=Driver.STATUS_REJECTED)
    if not updated:
        raise ConflictError(
            f"Driver is {get_driver(driver.id).status}, not pending approval",
            code="driver_not_pending",
        )

    logger.info("Driver %s rejected", driver.id)
    driver.status = Driver.STATUS_REJECTED
    return driver


def set_driver_special(driver_id: int, special: bool) -> Driver:
    driver = get_driver(driver_id)
    Driver.objects.filter(pk=driver.id).update(special=special)
    driver.special = special
    logger.info("Driver %s special=%s", driver.id, special)
    return driver
