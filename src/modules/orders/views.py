"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into HTTP status codes;
the view never swallows generic exceptions.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.coupons.exceptions import CouponError
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.inventory.exceptions import InsufficientStock, VariantNotFound
from modules.inventory.repositories.django_repository import VariantDjangoRepository
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingDetailsDTO
from modules.orders.exceptions import (
    IdempotencyKeyReused,
    IllegalTransition,
    OrderAccessDenied,
    OrderNotFound,
    PaymentUpdateNotAllowed,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    PaymentStatusSerializer,
    TransitionSerializer,
)
from modules.orders.services import OrderService


def _error(exc: Exception, status_code: int) -> Response:
    return Response(
        {"detail": str(exc), "error": type(exc).__name__},
        status=status_code,
    )


def _not_found() -> Response:
    return Response(
        {"detail": "Order not found.", "error": "OrderNotFound"},
        status=status.HTTP_404_NOT_FOUND,
    )


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).  Does **not**
    extend ``ModelViewSet``; all ORM access goes through the
    service/repository layer.
    """

    queryset = Order.objects.none()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_number", "shipping_full_name"]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            variant_repository=VariantDjangoRepository(),
            coupon_repository=CouponDjangoRepository(),
        )

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scope per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "by_number"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return self._service.list_orders(actor=self.request.user)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header: a replayed
        key returns the original order with 200, new orders get 201.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data
        idempotency_key = request.headers.get("Idempotency-Key")

        try:
            dto = CreateOrderDTO(
                buyer_id=request.user.pk,
                items=[
                    CreateOrderItemDTO(
                        variant_id=item["variant_id"],
                        quantity=item["quantity"],
                    )
                    for item in data["items"]
                ],
                shipping=ShippingDetailsDTO(**data["shipping"]),
                payment_method=data["payment_method"],
                coupon_code=data.get("coupon_code"),
                notes=data.get("notes", ""),
                idempotency_key=idempotency_key,
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            placement = self._service.place_order(dto)
        except VariantNotFound as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except InsufficientStock as exc:
            return Response(
                {
                    "detail": str(exc),
                    "error": "InsufficientStock",
                    "variant_id": str(exc.variant_id),
                    "available": exc.available,
                    "requested": exc.requested,
                },
                status=status.HTTP_409_CONFLICT,
            )
        except CouponError as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST)
        except IdempotencyKeyReused as exc:
            return _error(exc, status.HTTP_409_CONFLICT)

        out = OrderSerializer(placement.order)
        code = status.HTTP_200_OK if placement.replayed else status.HTTP_201_CREATED
        return Response(out.data, status=code)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Buyers see their own orders, admins see all.  Filtering, ordering
        and pagination come from ``filter_backends`` and
        ``StandardResultsSetPagination``.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk or "", actor=request.user)
        except OrderNotFound:
            return _not_found()
        return Response(OrderSerializer(order).data)

    @action(
        detail=False,
        methods=["get"],
        url_path=r"number/(?P<order_number>[A-Za-z0-9-]+)",
    )
    def by_number(self, request: Request, order_number: str) -> Response:
        """GET /api/v1/orders/number/{order_number}/"""
        try:
            order = self._service.get_by_number(order_number, actor=request.user)
        except OrderNotFound:
            return _not_found()
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @action(
        detail=True,
        methods=["post"],
        url_path="status",
        permission_classes=[IsAdminUser],
    )
    def transition(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/status/ (admin)"""
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.transition_order(
                order_id=pk,
                new_status=serializer.validated_data["status"],
                note=serializer.validated_data["note"],
                actor=request.user,
            )
        except OrderNotFound:
            return _not_found()
        except IllegalTransition as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Buyers may cancel their own pending orders; admins may cancel
        pending, processing or shipped orders.  Reserved stock and the
        coupon use are given back.
        """
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.cancel_order(
                order_id=pk,
                reason=serializer.validated_data["reason"],
                actor=request.user,
            )
        except (OrderNotFound, OrderAccessDenied):
            return _not_found()
        except IllegalTransition as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data)

    @action(
        detail=True,
        methods=["post"],
        url_path="payment",
        permission_classes=[IsAdminUser],
    )
    def payment(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/payment/ (admin)"""
        serializer = PaymentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.record_payment_status(
                order_id=pk,
                payment_status=serializer.validated_data["payment_status"],
                actor=request.user,
            )
        except OrderNotFound:
            return _not_found()
        except PaymentUpdateNotAllowed as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"], permission_classes=[IsAdminUser])
    def statistics(self, request: Request) -> Response:
        """GET /api/v1/orders/statistics/ (admin)"""
        stats = self._service.get_statistics()
        return Response(stats.model_dump(mode="json"))
