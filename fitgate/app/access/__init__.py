"""Gym access: credentials and the check-in gate."""

from .credentials import CredentialRepository, CredentialService, generate_token
from .gate import CheckInRepository, CheckInService
from .models import CheckInSession, CheckInStatus, GymCredential

__all__ = [
    "CheckInRepository",
    "CheckInService",
    "CheckInSession",
    "CheckInStatus",
    "CredentialRepository",
    "CredentialService",
    "GymCredential",
    "generate_token",
]
