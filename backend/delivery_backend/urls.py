from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (register, token, token refresh)
    path('api/auth/', include('accounts.urls')),

    # Orders endpoints (create, claim, offers, status, cancel)
    path('api/orders/', include('orders.urls')),

    # Driver APIs (profile, online/offline, available orders, admin approval)
    path('api/driver/', include('drivers.urls')),

    # Wallet reads for drivers
    path('api/wallet/', include('wallet.urls')),
]
