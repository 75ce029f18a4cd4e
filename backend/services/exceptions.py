"""Custom exceptions for the order assignment services.

Every engine failure carries a machine readable ``code`` and the HTTP status
the API layer answers with, so clients can tell "re-fetch and re-render"
(conflict) apart from "fix the input" or "not yours".
"""

from rest_framework import status


class OrderManagementError(Exception):
    """Base class for all order assignment failures."""
    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "", code: str = None, **details):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def as_dict(self):
        return {"error": self.code, "message": self.message, **self.details}


class ValidationError(OrderManagementError):
    """Raised for malformed input, before any store access."""
    code = "invalid"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(OrderManagementError):
    """Raised when an order, offer or driver cannot be found."""
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(OrderManagementError):
    """Raised when a status/offer-state precondition no longer holds at commit."""
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class AlreadyClaimedError(ConflictError):
    """Raised when another driver's claim committed first."""
    code = "already_claimed"


class IneligibleError(OrderManagementError):
    """Raised when a driver may not take the requested action."""
    code = "ineligible"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "", reason: str = "ineligible", **details):
        super().__init__(message, code=reason, reason=reason, **details)
        self.reason = reason


class InsufficientBalanceError(IneligibleError):
    """Raised when a driver's wallet is below the online threshold."""

    def __init__(self, balance, threshold, message: str = ""):
        super().__init__(
            message or "Wallet balance is below the minimum required to go online",
            reason="insufficient_balance",
            balance=str(balance),
            threshold=str(threshold),
        )
        self.balance = balance
        self.threshold = threshold


class AuthorizationError(OrderManagementError):
    """Raised when the actor does not own the order/offer."""
    code = "not_authorized"
    status_code = status.HTTP_403_FORBIDDEN
