from django.contrib import admin, messages

from drivers import services
from drivers.models import Driver
from services.exceptions import OrderManagementError


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    """Admin panel for approving and managing drivers"""

    list_display = [
        "user",
        "vehicle_number",
        "status",
        "service_category",
        "sub_service",
        "wallet_balance",
        "special",
        "approved_at",
    ]

    list_filter = [
        "status",
        "special",
        "service_category",
    ]

    search_fields = [
        "user__username",
        "vehicle_number",
    ]

    # Status and balance only change through the services
    readonly_fields = [
        "status",
        "wallet_balance",
        "approved_at",
        "created_at",
    ]

    actions = ["approve_selected", "reject_selected"]

    ordering = ("user__username",)

    def _run(self, request, queryset, action, label):
        done = 0
        for driver in queryset:
            try:
                action(driver.id)
                done += 1
            except OrderManagementError as exc:
                self.message_user(request, f"{driver}: {exc.message}", messages.WARNING)
        if done:
            self.message_user(request, f"{done} driver(s) {label}")

    @admin.action(description="Approve selected pending drivers")
    def approve_selected(self, request, queryset):
        self._run(request, queryset, services.approve_driver, "approved")

    @admin.action(description="Reject selected pending drivers")
    def reject_selected(self, request, queryset):
        self._run(request, queryset, services.reject_driver, "rejected")
