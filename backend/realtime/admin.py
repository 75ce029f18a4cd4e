from django.contrib import admin

from .models import OrderEvent


@admin.register(OrderEvent)
class OrderEventAdmin(admin.ModelAdmin):
    """Outbox inspection; rows are written and delivered by the notifier only"""
    list_display = ("id", "event_type", "order_id", "created_at", "delivered_at", "attempts")
    list_filter = ("delivered_at",)
    readonly_fields = ("groups", "payload", "created_at", "delivered_at", "attempts", "last_error")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    @admin.display(description="Type")
    def event_type(self, obj):
        return obj.payload.get("type")

    @admin.display(description="Order")
    def order_id(self, obj):
        return obj.payload.get("order_id")
