from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from drivers.models import Driver


class DriverInline(admin.StackedInline):
    """Driver registration shown on the owning account; approval runs from the Driver admin"""
    model = Driver
    can_delete = False
    extra = 0
    fields = ("vehicle_number", "status", "service_category", "sub_service", "wallet_balance", "special")
    readonly_fields = ("status", "wallet_balance")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "role", "phone_number", "completed_orders", "driver_status", "is_staff"]
    list_filter = ["role", "is_staff", "is_active"]
    search_fields = ["username", "email", "phone_number"]
    ordering = ("-date_joined",)

    # Maintained by the order lifecycle on delivery
    readonly_fields = ("completed_orders",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("role", "phone_number", "completed_orders")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Marketplace", {"fields": ("role", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        if obj is not None and obj.role == User.ROLE_DRIVER:
            return [DriverInline]
        return []

    @admin.display(description="Driver status")
    def driver_status(self, obj):
        profile = getattr(obj, "driver_profile", None)
        return profile.get_status_display() if profile else "-"
