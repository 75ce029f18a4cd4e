from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    # Customer APIs
    path('', views.orders, name='orders'),
    path('<int:order_id>/', views.order_detail, name='order-detail'),
    path('<int:order_id>/cancel/', views.cancel, name='cancel-order'),
    path('offers/<int:offer_id>/accept/', views.accept, name='accept-offer'),
    path('offers/<int:offer_id>/reject/', views.reject, name='reject-offer'),

    # Driver APIs
    path('<int:order_id>/claim/', views.claim, name='claim-order'),
    path('<int:order_id>/offers/', views.offers, name='order-offers'),
    path('<int:order_id>/status/', views.update_status, name='order-status'),
]
