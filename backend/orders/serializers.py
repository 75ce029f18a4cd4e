from rest_framework import serializers

from drivers.serializers import DriverBasicSerializer
from .models import Offer, Order


class CustomerBasicSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(read_only=True)
    phone_number = serializers.CharField(read_only=True)


class OrderSerializer(serializers.ModelSerializer):
    """Serializer for Orders"""
    customer = CustomerBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True)
    service_name = serializers.CharField(source='service.name', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'request_number', 'customer', 'driver', 'service', 'service_name',
                  'sub_service', 'pickup_address', 'pickup_latitude', 'pickup_longitude',
                  'dropoff_address', 'dropoff_latitude', 'dropoff_longitude',
                  'scheduled_for', 'total_amount', 'driver_share', 'payment_method',
                  'notes', 'pricing_option', 'status', 'created_at', 'assigned_at',
                  'picked_up_at', 'delivered_at', 'cancelled_at', 'cancelled_by',
                  'cancellation_reason']
        read_only_fields = fields


class AvailableOrderSerializer(serializers.ModelSerializer):
    """What a driver sees before committing: no customer contact details."""
    service_name = serializers.CharField(source='service.name', read_only=True)
    has_open_offer = serializers.BooleanField(read_only=True, default=False)

    class Meta:
        model = Order
        fields = ['id', 'request_number', 'service', 'service_name', 'sub_service',
                  'pickup_address', 'pickup_latitude', 'pickup_longitude',
                  'dropoff_address', 'dropoff_latitude', 'dropoff_longitude',
                  'scheduled_for', 'driver_share', 'payment_method', 'notes',
                  'pricing_option', 'status', 'created_at', 'has_open_offer']
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    """
    Shape check for order creation. Business rules (amounts, schedule,
    sub-service membership) are enforced by create_order.
    """
    service = serializers.IntegerField()
    sub_service = serializers.IntegerField(required=False, allow_null=True)
    pricing_option = serializers.CharField()
    pickup_address = serializers.CharField(required=False, allow_blank=True, default='')
    pickup_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    pickup_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    dropoff_address = serializers.CharField(required=False, allow_blank=True, default='')
    dropoff_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    dropoff_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    scheduled_for = serializers.DateTimeField(required=False, allow_null=True)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    driver_share = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    payment_method = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class OfferSerializer(serializers.ModelSerializer):
    driver = DriverBasicSerializer(read_only=True)
    state = serializers.CharField(read_only=True)

    class Meta:
        model = Offer
        fields = ['id', 'order', 'driver', 'price', 'accepted', 'state', 'created_at', 'responded_at']
        read_only_fields = fields


class OfferCreateSerializer(serializers.Serializer):
    # Positivity is checked by submit_offer
    price = serializers.DecimalField(max_digits=12, decimal_places=2)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Order.STATUS_PICKED_UP, Order.STATUS_DELIVERED])


class OrderCancelSerializer(serializers.Serializer):
    """Serializer for order cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True, default='')
