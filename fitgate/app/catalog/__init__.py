"""Catalog collaborator: gyms, subscription plans and supplements."""

from .models import BillingCycle, Gym, Supplement, SubscriptionPlan
from .repository import CatalogStore, PostgresCatalogStore

__all__ = [
    "BillingCycle",
    "CatalogStore",
    "Gym",
    "PostgresCatalogStore",
    "Supplement",
    "SubscriptionPlan",
]
