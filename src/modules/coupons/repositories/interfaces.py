"""Coupon repository interface.

``try_consume`` and ``revert`` are the only ways ``usage_count`` changes;
each is one conditional statement on the coupon row.  Admin edits go
through ``apply_changes``, which never writes that column.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.coupons.models import Coupon


class ICouponRepository(IRepository["Coupon"]):
    """Repository contract for the Coupon aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Coupon]":
        """List live coupons with optional filters."""

    @abstractmethod
    def get_by_code(self, code: str) -> Optional[Coupon]:
        """Retrieve a live coupon by code (case-insensitive)."""

    @abstractmethod
    def code_exists(self, code: str) -> bool:
        """Whether any coupon, deleted ones included, holds *code*."""

    @abstractmethod
    def try_consume(self, code: str, now: datetime) -> bool:
        """Increment ``usage_count`` only if the coupon is still valid at *now*.

        Returns ``False`` and changes nothing when the coupon is missing,
        inactive, out of its window or at its cap.
        """

    @abstractmethod
    def revert(self, code: str) -> bool:
        """Decrement ``usage_count``; ``False`` if it is already zero."""

    @abstractmethod
    def apply_changes(self, id: str, changes: Dict[str, Any]) -> bool:
        """Persist a partial update of the listed columns only.

        Returns ``False`` when the coupon is gone or a lowered
        ``max_usage`` would fall below the current ``usage_count``.
        """
