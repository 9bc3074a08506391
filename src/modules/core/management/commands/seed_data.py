from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.coupons.models import Coupon, CouponType
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.inventory.models import Product, ProductVariant
from modules.inventory.repositories.django_repository import VariantDjangoRepository
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingDetailsDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

CATALOG = [
    ("Áo thun basic", Decimal("150000"), ["S", "M", "L"], ["Trắng", "Đen"]),
    ("Áo sơ mi oxford", Decimal("320000"), ["M", "L", "XL"], ["Xanh", "Trắng"]),
    ("Quần jean slim", Decimal("450000"), ["29", "30", "31", "32"], ["Xanh đậm"]),
    ("Quần short kaki", Decimal("220000"), ["M", "L"], ["Be", "Đen"]),
    ("Áo khoác gió", Decimal("520000"), ["M", "L", "XL"], ["Đen", "Xám"]),
]

COUPONS = [
    ("SAVE10", CouponType.PERCENTAGE, Decimal("10"), Decimal("100000"), 100),
    ("WELCOME50K", CouponType.FIXED, Decimal("50000"), Decimal("300000"), 0),
    ("VIP20", CouponType.PERCENTAGE, Decimal("20"), Decimal("500000"), 10),
]

BUYERS = [
    ("an.nguyen", "Nguyễn Văn An", "Hà Nội"),
    ("binh.tran", "Trần Thị Bình", "Hồ Chí Minh"),
    ("cuong.le", "Lê Minh Cường", "Đà Nẵng"),
]


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        buyers = self._seed_users()
        variants = self._seed_catalog()
        coupons = self._seed_coupons()
        orders_created = self._seed_orders(buyers, variants)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"buyers={len(buyers)}, "
                f"variants={len(variants)}, "
                f"coupons={len(coupons)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> list:
        User = get_user_model()
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
        buyers = []
        for username, full_name, _ in BUYERS:
            user = User.objects.filter(username=username).first()
            if user is None:
                first, _, last = full_name.rpartition(" ")
                user = User.objects.create_user(
                    username,
                    password="buyer123",
                    email=f"{username}@example.com",
                    first_name=last,
                    last_name=first,
                )
            buyers.append(user)
        return buyers

    def _seed_catalog(self) -> list[ProductVariant]:
        self.stdout.write("Creating products and variants...")
        variants: list[ProductVariant] = []
        for index, (name, base_price, sizes, colors) in enumerate(CATALOG, start=1):
            product, _ = Product.objects.get_or_create(
                name=name, defaults={"base_price": base_price}
            )
            for size in sizes:
                for color_index, color in enumerate(colors):
                    variant, _ = ProductVariant.objects.get_or_create(
                        product=product,
                        size=size,
                        color=color,
                        defaults={
                            "sku": f"SP{index:03d}-{size}-{color_index}",
                            "additional_price": Decimal("20000")
                            if size in ("XL", "32")
                            else Decimal("0"),
                            "stock": random.randint(0, 40),
                        },
                    )
                    variants.append(variant)
        self.stdout.write(self.style.SUCCESS("Creating products and variants... Done!"))
        return variants

    def _seed_coupons(self) -> list[Coupon]:
        self.stdout.write("Creating coupons...")
        now = timezone.now()
        coupons = []
        for code, coupon_type, value, minimum, max_usage in COUPONS:
            coupon, _ = Coupon.objects.get_or_create(
                code=code,
                defaults={
                    "type": coupon_type,
                    "value": value,
                    "min_order_amount": minimum,
                    "max_usage": max_usage,
                    "max_discount": Decimal("100000")
                    if coupon_type == CouponType.PERCENTAGE
                    else Decimal("0"),
                    "start_date": now - timedelta(days=7),
                    "end_date": now + timedelta(days=90),
                },
            )
            coupons.append(coupon)
        self.stdout.write(self.style.SUCCESS("Creating coupons... Done!"))
        return coupons

    def _seed_orders(self, buyers: list, variants: list[ProductVariant]) -> int:
        """Place orders through the service so stock and coupons stay consistent."""
        self.stdout.write("Creating orders...")
        service = OrderService(
            order_repository=OrderDjangoRepository(),
            variant_repository=VariantDjangoRepository(),
            coupon_repository=CouponDjangoRepository(),
        )
        paths = [
            [],
            [OrderStatus.PROCESSING],
            [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED],
            [OrderStatus.CANCELLED],
        ]
        orders_created = 0
        for i in range(20):
            key = f"seed-order-{i + 1}"
            if OrderDjangoRepository().get_by_idempotency_key(key):
                continue
            in_stock = [v for v in variants if v.stock > 0]
            if not in_stock:
                break
            buyer_index = i % len(buyers)
            buyer = buyers[buyer_index]
            picked = random.sample(in_stock, k=min(random.randint(1, 3), len(in_stock)))
            dto = CreateOrderDTO(
                buyer_id=buyer.pk,
                items=[
                    CreateOrderItemDTO(variant_id=variant.id, quantity=1)
                    for variant in picked
                ],
                shipping=ShippingDetailsDTO(
                    full_name=BUYERS[buyer_index][1],
                    email=buyer.email,
                    phone=f"09{random.randint(10000000, 99999999)}",
                    address=f"{random.randint(1, 300)} Đường Lê Lợi",
                    city=BUYERS[buyer_index][2],
                ),
                payment_method=random.choice(PaymentMethod.values),
                coupon_code="SAVE10" if i % 5 == 0 else None,
                idempotency_key=key,
            )
            try:
                order = service.create_order(dto)
            except Exception as exc:
                self.stdout.write(self.style.WARNING(f"Skipped order {key}: {exc}"))
                continue
            for status in random.choice(paths):
                service.transition_order(order.id, status, note="Seed transition")
            for variant in picked:
                variant.refresh_from_db(fields=["stock"])
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
