from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from accounts.serializers import RegisterSerializer, UserSerializer


class RegisterView(APIView):
    """
    Register a new customer or driver

    POST Body:
    {
        "username": "asha",
        "email": "asha@example.com",
        "password": "password123",
        "role": "customer",  // or "driver"
        "phone_number": "9000000000",
        "vehicle_number": "WB-1001",  // required for drivers
        "service_category": 1,  // drivers, optional
        "sub_service": 2  // drivers, optional
    }

    Drivers start in status pending until an admin approves them.
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = RefreshToken.for_user(user)
        body = {
            "success": True,
            "message": "User registered successfully",
            "user": UserSerializer(user).data,
            "tokens": {
                "refresh": str(refresh),
                "access": str(refresh.access_token),
            },
        }
        if user.role == user.ROLE_DRIVER:
            body["driver_status"] = user.driver_profile.status
        return Response(body, status=status.HTTP_201_CREATED)
