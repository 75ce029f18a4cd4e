from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsCustomer, IsDriver
from services.exceptions import NotFoundError
from services.order_management import (
    accept_offer,
    advance_order_status,
    cancel_order,
    claim_order,
    create_order,
    get_order_for_actor,
    list_customer_orders,
    list_offers,
    reject_offer,
    submit_offer,
)
from .serializers import (
    OfferCreateSerializer,
    OfferSerializer,
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusSerializer,
)

# Service errors (validation, conflict, eligibility...) are rendered by
# common.exceptions.order_exception_handler.


def _driver_id(user):
    try:
        return user.driver_profile.id
    except AttributeError:
        raise NotFoundError("Driver profile not found", code="driver_not_found")


def _result_response(result, status_code=status.HTTP_200_OK, **extra):
    body = {
        'success': result.success,
        'message': result.message,
        'order': OrderSerializer(result.order).data,
    }
    if result.offer is not None:
        body['offer'] = OfferSerializer(result.offer).data
    body.update(result.extra or {})
    body.update(extra)
    return Response(body, status=status_code)


# ==================== Customer Order APIs ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def orders(request):
    """
    GET: the customer's orders (``?active=1`` for non-terminal only)
    POST: create an order in auto_accept or choose_offer mode
    """
    if request.method == 'GET':
        active_only = request.query_params.get('active') in ('1', 'true')
        queryset = list_customer_orders(request.user, active_only=active_only)
        return Response(OrderSerializer(queryset, many=True).data)

    serializer = OrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = create_order(
        request.user,
        service_id=data['service'],
        sub_service_id=data.get('sub_service'),
        **{key: value for key, value in data.items() if key not in ('service', 'sub_service')}
    )
    return _result_response(result, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, order_id):
    order = get_order_for_actor(order_id, request.user)
    return Response(OrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel(request, order_id):
    """Cancel by the owning customer (new/pending only) or an admin (any non-terminal)."""
    serializer = OrderCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = cancel_order(order_id, request.user, serializer.validated_data['reason'])
    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCustomer])
def accept(request, offer_id):
    result = accept_offer(offer_id, request.user)
    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCustomer])
def reject(request, offer_id):
    result = reject_offer(offer_id, request.user)
    return _result_response(result)


# ==================== Driver Order APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def claim(request, order_id):
    """First-come claim on an auto-accept order."""
    result = claim_order(order_id, _driver_id(request.user))
    return _result_response(result)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def offers(request, order_id):
    """
    GET: offers on the order (all for the owner, own offers for a driver)
    POST: driver submits a priced offer
    """
    if request.method == 'GET':
        return Response(OfferSerializer(list_offers(order_id, request.user), many=True).data)

    if not IsDriver().has_permission(request, None):
        return Response(
            {'success': False, 'error': 'not_authorized', 'message': 'Only drivers can submit offers'},
            status=status.HTTP_403_FORBIDDEN
        )

    serializer = OfferCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = submit_offer(order_id, _driver_id(request.user), serializer.validated_data['price'])
    return _result_response(result, status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def update_status(request, order_id):
    """Driver marks an assigned order picked_up or delivered."""
    serializer = OrderStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = advance_order_status(order_id, _driver_id(request.user), serializer.validated_data['status'])
    return _result_response(result)
