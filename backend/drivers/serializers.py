from rest_framework import serializers

from drivers.models import Driver


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile serializer
    """
    username = serializers.CharField(source="user.username", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)
    service_category_name = serializers.CharField(
        source="service_category.name", read_only=True, default=None
    )
    sub_service_name = serializers.CharField(
        source="sub_service.name", read_only=True, default=None
    )

    class Meta:
        model = Driver
        fields = [
            "id",
            "username",
            "phone_number",
            "vehicle_number",
            "status",
            "service_category",
            "service_category_name",
            "sub_service",
            "sub_service_name",
            "wallet_balance",
            "special",
            "approved_at",
            "created_at",
        ]
        read_only_fields = fields


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for order details
    (sent to customers once a driver is assigned or has made an offer).
    """
    username = serializers.CharField(source="user.username", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = Driver
        fields = [
            "id",
            "username",
            "phone_number",
            "vehicle_number",
        ]


class DriverStatusSerializer(serializers.Serializer):
    """
    Serializer for updating driver availability (online/offline).
    """
    status = serializers.ChoiceField(choices=[Driver.STATUS_ONLINE, Driver.STATUS_OFFLINE])


class DriverApprovalSerializer(serializers.Serializer):
    """Optional specialization an admin assigns while approving."""
    service_category = serializers.IntegerField(required=False, allow_null=True)
    sub_service = serializers.IntegerField(required=False, allow_null=True)


class DriverSpecialSerializer(serializers.Serializer):
    special = serializers.BooleanField()
