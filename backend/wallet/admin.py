from django.contrib import admin, messages

from services.exceptions import OrderManagementError
from wallet.models import Transaction
from wallet.services import complete_transaction, record_transaction


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Ledger entries are append-only; new entries go through record_transaction"""

    list_display = ["driver", "type", "amount", "status", "created_at"]
    list_filter = ["type", "status", "created_at"]
    search_fields = ["driver__user__username", "driver__vehicle_number"]
    readonly_fields = ["created_at"]
    actions = ["complete_selected"]

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return ["driver", "type", "amount", "status", "metadata", "created_at"]
        return self.readonly_fields

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        if change:
            return
        entry = record_transaction(
            obj.driver_id, obj.type, obj.amount, status=obj.status, metadata=obj.metadata
        )
        obj.pk = entry.pk

    @admin.action(description="Complete selected pending transactions")
    def complete_selected(self, request, queryset):
        for entry in queryset.filter(status=Transaction.STATUS_PENDING):
            try:
                complete_transaction(entry.pk)
            except OrderManagementError as exc:
                self.message_user(request, f"{entry}: {exc.message}", messages.WARNING)
