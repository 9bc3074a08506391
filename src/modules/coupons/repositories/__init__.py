"""Coupon repositories package."""

from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.repositories.interfaces import ICouponRepository

__all__ = ["CouponDjangoRepository", "ICouponRepository"]
