"""Coupon API views.

Admins manage coupons; anyone may ask what discount a code grants on an
amount (``GET /coupons/validate/``), which never consumes a use.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.permissions import AllowAny, BasePermission, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.coupons.dtos import CouponQuoteDTO, CreateCouponDTO, UpdateCouponDTO
from modules.coupons.exceptions import (
    CouponAlreadyExists,
    CouponError,
    CouponNotFound,
)
from modules.coupons.filters import CouponFilter
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.serializers import (
    CouponSerializer,
    CouponValidateQuerySerializer,
    CouponWriteSerializer,
)
from modules.coupons.services import CouponService


class CouponViewSet(ListModelMixin, GenericViewSet):
    """Coupon management (admin) plus the public ``validate`` action."""

    filterset_class = CouponFilter
    ordering_fields = ["created_at", "end_date", "usage_count", "code"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    serializer_class = CouponSerializer
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = CouponService(repository=CouponDjangoRepository())

    def get_queryset(self):
        return self._service.list_coupons()

    def get_permissions(self) -> list[BasePermission]:
        if self.action == "validate":
            return [AllowAny()]
        return [IsAdminUser()]

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "coupon_validation" if self.action == "validate" else None
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Retrieve / Create / Update / Destroy
    # ------------------------------------------------------------------

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/coupons/{pk}/"""
        try:
            coupon = self._service.get_coupon(pk or "")
        except CouponNotFound:
            return Response(
                {"detail": "Coupon not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(CouponSerializer(coupon).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/coupons/"""
        serializer = CouponWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            dto = CreateCouponDTO(**serializer.validated_data)
        except (PydanticValidationError, ValueError) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            coupon = self._service.create_coupon(dto)
        except CouponAlreadyExists as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_409_CONFLICT,
            )

        return Response(CouponSerializer(coupon).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/coupons/{pk}/"""
        if "code" in request.data or "usage_count" in request.data:
            return Response(
                {"detail": "Fields 'code' and 'usage_count' cannot be changed."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = CouponWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        try:
            dto = UpdateCouponDTO(**serializer.validated_data)
            coupon = self._service.update_coupon(pk or "", dto)
        except CouponNotFound:
            return Response(
                {"detail": "Coupon not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(CouponSerializer(coupon).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/coupons/{pk}/ (soft delete)"""
        try:
            self._service.delete_coupon(pk or "")
        except CouponNotFound:
            return Response(
                {"detail": "Coupon not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Public validation
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def validate(self, request: Request) -> Response:
        """GET /api/v1/coupons/validate/?code=SAVE10&order_amount=200000"""
        query = CouponValidateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        code = query.validated_data["code"]
        order_amount = query.validated_data["order_amount"]

        try:
            redemption = self._service.check(code, order_amount)
        except CouponError as exc:
            return Response(
                {"detail": str(exc), "error": type(exc).__name__},
                status=status.HTTP_400_BAD_REQUEST,
            )

        quote = CouponQuoteDTO(
            code=redemption.coupon.code,
            type=redemption.coupon.type,
            value=redemption.coupon.value,
            order_amount=order_amount,
            discount=redemption.discount,
        )
        return Response(quote.model_dump(mode="json"))
