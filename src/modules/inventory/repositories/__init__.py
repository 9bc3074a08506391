"""Inventory repositories package."""

from modules.inventory.repositories.django_repository import VariantDjangoRepository
from modules.inventory.repositories.interfaces import IVariantRepository

__all__ = ["IVariantRepository", "VariantDjangoRepository"]
