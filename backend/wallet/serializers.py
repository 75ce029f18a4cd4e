from rest_framework import serializers

from wallet.models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    signed_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Transaction
        fields = ["id", "type", "amount", "signed_amount", "status", "metadata", "created_at"]
        read_only_fields = fields
