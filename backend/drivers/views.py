from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsPlatformAdmin
from drivers import services
from drivers.models import Driver
from drivers.serializers import (
    DriverApprovalSerializer,
    DriverProfileSerializer,
    DriverSpecialSerializer,
    DriverStatusSerializer,
)
from orders.serializers import AvailableOrderSerializer, OrderSerializer
from services.order_management import list_available_orders, list_driver_orders


# Utility: Ensure request.user is a driver
def require_driver(user):
    if user.role != "driver":
        return False, Response(
            {"success": False, "error": "not_authorized", "message": "Only drivers allowed"},
            status=status.HTTP_403_FORBIDDEN,
        )
    try:
        profile = user.driver_profile
        return True, profile
    except Driver.DoesNotExist:
        return False, Response(
            {"success": False, "error": "driver_not_found", "message": "Driver profile not found"},
            status=status.HTTP_404_NOT_FOUND,
        )


class DriverProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile  # Response object

        serializer = DriverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def post(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        vehicle_number = (request.data.get("vehicle_number") or "").strip()
        if vehicle_number and vehicle_number != profile.vehicle_number:
            if Driver.objects.filter(vehicle_number=vehicle_number).exclude(pk=profile.pk).exists():
                return Response(
                    {"success": False, "error": "invalid", "message": "Vehicle number already registered",
                     "field": "vehicle_number"},
                    status=status.HTTP_400_BAD_REQUEST,
                )
            profile.vehicle_number = vehicle_number
            profile.save(update_fields=["vehicle_number"])

        serializer = DriverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data, status=200)


class DriverStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        return Response({
            "status": profile.status,
            "wallet_balance": str(profile.wallet_balance),
            "minimum_balance": str(services.minimum_wallet_balance()),
            "special": profile.special,
        })

    def put(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = DriverStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        # Insufficient balance / unapproved errors go through the exception handler
        if new_status == Driver.STATUS_ONLINE:
            services.set_driver_online(profile.id)
        else:
            services.set_driver_offline(profile.id)

        return Response({
            "success": True,
            "message": f"Status updated to {new_status}",
            "status": new_status
        })


class AvailableOrdersForDriverView(APIView):
    """Open orders the driver can claim or bid on (empty while offline)."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        orders = list_available_orders(profile.id)
        serializer = AvailableOrderSerializer(orders, many=True)
        return Response({
            "count": len(orders),
            "status": profile.status,
            "orders": serializer.data,
        })


class DriverCurrentOrdersView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        history = request.query_params.get("history") in ("1", "true")
        orders = list_driver_orders(profile.id, active_only=not history)
        serializer = OrderSerializer(orders, many=True)
        return Response({
            "has_active_order": any(not order.is_terminal for order in orders),
            "orders": serializer.data,
        })


# ==================== Admin APIs ====================

class DriverApproveView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def post(self, request, driver_id):
        serializer = DriverApprovalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        driver = services.approve_driver(
            driver_id,
            service_category_id=serializer.validated_data.get("service_category"),
            sub_service_id=serializer.validated_data.get("sub_service"),
        )
        return Response({
            "success": True,
            "message": "Driver approved",
            "driver": DriverProfileSerializer(driver).data,
        })


class DriverRejectView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def post(self, request, driver_id):
        driver = services.reject_driver(driver_id)
        return Response({
            "success": True,
            "message": "Driver application rejected",
            "driver": DriverProfileSerializer(driver).data,
        })


class DriverSpecialView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def post(self, request, driver_id):
        serializer = DriverSpecialSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        driver = services.set_driver_special(driver_id, serializer.validated_data["special"])
        return Response({
            "success": True,
            "driver": DriverProfileSerializer(driver).data,
        })
