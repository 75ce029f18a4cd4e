# accounts/permissions.py
from rest_framework.permissions import BasePermission

from accounts.models import User


class _RolePermission(BasePermission):
    role = None

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsCustomer(_RolePermission):
    """Allows access only to customer accounts."""
    role = User.ROLE_CUSTOMER


class IsDriver(_RolePermission):
    """Allows access only to driver accounts."""
    role = User.ROLE_DRIVER


class IsPlatformAdmin(BasePermission):
    """
    Allows access to admins: role == 'admin' or Django staff users.
    Keeps role check logic centralized.
    """
    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return user.is_platform_admin
