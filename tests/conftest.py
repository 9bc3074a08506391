import itertools
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from modules.coupons.models import Coupon, CouponType
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.inventory.models import Product, ProductVariant
from modules.inventory.repositories.django_repository import VariantDjangoRepository
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingDetailsDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

_sku_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttling counters live in the cache; start every test clean."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture()
def buyer(django_user_model):
    return django_user_model.objects.create_user(
        "buyer", password="buyer-pass", email="buyer@example.com"
    )


@pytest.fixture()
def other_buyer(django_user_model):
    return django_user_model.objects.create_user(
        "other", password="other-pass", email="other@example.com"
    )


@pytest.fixture()
def buyer_client(buyer):
    client = APIClient()
    client.force_authenticate(user=buyer)
    return client


@pytest.fixture()
def other_client(other_buyer):
    client = APIClient()
    client.force_authenticate(user=other_buyer)
    return client


@pytest.fixture()
def admin_client_api(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


# ---------------------------------------------------------------------------
# Catalog and coupons
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_variant():
    """Factory: ``make_variant(stock=5, price=Decimal("100000"))``."""

    def _make(
        stock: int = 10,
        price: Decimal = Decimal("100000"),
        additional_price: Decimal = Decimal("0"),
        name: str = "Áo thun basic",
        size: str = "M",
        color: str = "Đen",
    ) -> ProductVariant:
        product = Product.objects.create(name=name, base_price=price)
        return ProductVariant.objects.create(
            product=product,
            size=size,
            color=color,
            sku=f"TS-{next(_sku_counter):05d}",
            additional_price=additional_price,
            stock=stock,
        )

    return _make


@pytest.fixture()
def make_coupon():
    """Factory for coupons valid from yesterday to next month by default."""

    def _make(
        code: str = "SAVE10",
        type: str = CouponType.PERCENTAGE,
        value: Decimal = Decimal("10"),
        **overrides,
    ) -> Coupon:
        now = timezone.now()
        fields = {
            "code": code,
            "type": type,
            "value": value,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
        }
        fields.update(overrides)
        return Coupon.objects.create(**fields)

    return _make


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        variant_repository=VariantDjangoRepository(),
        coupon_repository=CouponDjangoRepository(),
    )


@pytest.fixture()
def shipping():
    return ShippingDetailsDTO(
        full_name="Nguyễn Văn An",
        email="an.nguyen@example.com",
        phone="0912345678",
        address="12 Lê Lợi",
        city="Hà Nội",
    )


@pytest.fixture()
def place_order(order_service, buyer, shipping):
    """Factory: ``place_order([(variant, 2)], coupon_code="SAVE10")``."""

    def _place(lines, coupon_code=None, user=None, **extra):
        dto = CreateOrderDTO(
            buyer_id=(user or buyer).pk,
            items=[
                CreateOrderItemDTO(variant_id=variant.id, quantity=quantity)
                for variant, quantity in lines
            ],
            shipping=shipping,
            coupon_code=coupon_code,
            **extra,
        )
        return order_service.create_order(dto)

    return _place


@pytest.fixture()
def order_payload():
    """Factory for ``POST /api/v1/orders/`` bodies."""

    def _payload(lines, coupon_code=None, payment_method="cod"):
        body = {
            "items": [
                {"variant_id": str(variant.id), "quantity": quantity}
                for variant, quantity in lines
            ],
            "shipping": {
                "full_name": "Trần Thị Bình",
                "email": "binh@example.com",
                "phone": "0987654321",
                "address": "45 Nguyễn Huệ",
                "city": "Hồ Chí Minh",
            },
            "payment_method": payment_method,
        }
        if coupon_code is not None:
            body["coupon_code"] = coupon_code
        return body

    return _payload
