import logging

from django.db import transaction
from rest_framework import serializers

from accounts.models import User
from drivers.models import Driver
from drivers.services import resolve_specialization

logger = logging.getLogger(__name__)


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "email", "role", "phone_number", "completed_orders"]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """Serializer for customer and driver sign-up"""
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=[User.ROLE_CUSTOMER, User.ROLE_DRIVER])
    phone_number = serializers.CharField(max_length=15, required=False, allow_blank=True)
    vehicle_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    service_category = serializers.IntegerField(required=False, allow_null=True)
    sub_service = serializers.IntegerField(required=False, allow_null=True)

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("Username already exists")
        return value

    def validate_email(self, value):
        if User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    def validate(self, data):
        if data["role"] != User.ROLE_DRIVER:
            return data

        vehicle_number = (data.get("vehicle_number") or "").strip()
        if not vehicle_number:
            raise serializers.ValidationError({
                "vehicle_number": "Vehicle number is required for drivers"
            })
        if Driver.objects.filter(vehicle_number=vehicle_number).exists():
            raise serializers.ValidationError({
                "vehicle_number": "Vehicle number is already registered"
            })
        data["vehicle_number"] = vehicle_number

        # Raises the service-layer ValidationError, rendered by the API exception handler
        category, sub_service = resolve_specialization(
            data.get("service_category"), data.get("sub_service")
        )
        data["service_category"] = category
        data["sub_service"] = sub_service
        return data

    @transaction.atomic
    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data["username"],
            email=validated_data["email"],
            password=validated_data["password"],
            role=validated_data["role"],
            phone_number=validated_data.get("phone_number", ""),
        )

        # New drivers wait for admin approval before they can go online
        if user.role == User.ROLE_DRIVER:
            driver = Driver.objects.create(
                user=user,
                vehicle_number=validated_data["vehicle_number"],
                status=Driver.STATUS_PENDING,
                service_category=validated_data["service_category"],
                sub_service=validated_data["sub_service"],
            )
            logger.info("Driver %s registered, pending approval", driver.id)

        return user
