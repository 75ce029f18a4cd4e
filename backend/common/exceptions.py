"""DRF exception handler mapping service errors to JSON responses."""

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from services.exceptions import OrderManagementError

logger = logging.getLogger(__name__)


def order_exception_handler(exc, context):
    """
    Render OrderManagementError subclasses as
    ``{"success": false, "error": <code>, "message": ..., **details}``.
    Everything else goes through DRF's default handler.
    """
    if isinstance(exc, OrderManagementError):
        view = context.get("view")
        logger.info(
            "%s in %s: %s",
            exc.code, view.__class__.__name__ if view else "unknown", exc.message,
        )
        return Response({"success": False, **exc.as_dict()}, status=exc.status_code)

    return exception_handler(exc, context)
