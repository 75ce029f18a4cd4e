from django.urls import path
from .views import (
    DriverProfileView,
    DriverStatusView,
    AvailableOrdersForDriverView,
    DriverCurrentOrdersView,
    DriverApproveView,
    DriverRejectView,
    DriverSpecialView,
)

urlpatterns = [
    path("profile/", DriverProfileView.as_view(), name="driver-profile"),
    path("status/", DriverStatusView.as_view(), name="driver-status"),
    path("available-orders/", AvailableOrdersForDriverView.as_view(), name="driver-available-orders"),
    path("current-orders/", DriverCurrentOrdersView.as_view(), name="driver-current-orders"),

    # Admin
    path("<int:driver_id>/approve/", DriverApproveView.as_view(), name="driver-approve"),
    path("<int:driver_id>/reject/", DriverRejectView.as_view(), name="driver-reject"),
    path("<int:driver_id>/special/", DriverSpecialView.as_view(), name="driver-special"),
]
