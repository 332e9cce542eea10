"""Membership (entitlement) domain package."""

from .models import Membership, MembershipView
from .service import MembershipRepository, MembershipService

__all__ = [
    "Membership",
    "MembershipRepository",
    "MembershipService",
    "MembershipView",
]
