"""Human readable identifiers used for support lookups."""

import secrets

from django.conf import settings
from django.utils import timezone


def generate_request_number(prefix: str = None) -> str:
    """
    Build a request number like ``REQ-20250114-9F3A61C2``.

    Random rather than sequential; uniqueness is enforced by the unique
    index on Order.request_number and callers retry on collision.
    """
    prefix = prefix or settings.REQUEST_NUMBER_PREFIX
    return f"{prefix}-{timezone.now():%Y%m%d}-{secrets.token_hex(4).upper()}"
