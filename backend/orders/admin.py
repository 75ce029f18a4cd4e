"""Tells what to show in the Django admin interface for orders app"""

from django.contrib import admin, messages

from services.exceptions import OrderManagementError
from services.order_management import cancel_order
from .models import Order, Offer


class ReadOnlyAdminMixin:
    """Orders and offers only change through the assignment services, never through admin forms"""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OfferInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = Offer
    extra = 0
    fields = ("driver", "price", "accepted", "created_at", "responded_at")
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['request_number', 'customer', 'driver', 'service', 'pricing_option',
                    'status', 'created_at', 'assigned_at', 'delivered_at']
    list_filter = ['status', 'pricing_option', 'created_at']
    search_fields = ['request_number', 'customer__username', 'driver__user__username', 'pickup_address']
    date_hierarchy = 'created_at'
    inlines = [OfferInline]
    actions = ['cancel_selected']

    @admin.action(description="Cancel selected orders")
    def cancel_selected(self, request, queryset):
        cancelled = 0
        for order in queryset:
            try:
                cancel_order(order.id, request.user, "Cancelled by support")
                cancelled += 1
            except OrderManagementError as exc:
                self.message_user(request, f"{order}: {exc.message}", messages.WARNING)
        if cancelled:
            self.message_user(request, f"{cancelled} order(s) cancelled")


@admin.register(Offer)
class OfferAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("order", "driver", "price", "accepted", "created_at", "responded_at")
    list_filter = ("accepted",)
    search_fields = ("order__request_number", "driver__user__username")
