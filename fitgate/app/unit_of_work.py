"""Transaction boundary shared by the ledger, membership and access services."""
from __future__ import annotations

from types import TracebackType
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Type

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .access.credentials import CredentialRepository
    from .access.gate import CheckInRepository
    from .memberships.service import MembershipRepository
    from .orders.service import OrderRepository


class UnitOfWork(Protocol):
    """Repositories bound to one transaction.

    Leaving the context without an exception commits every write made through
    the repositories; any exception rolls all of them back.
    """

    orders: "OrderRepository"
    memberships: "MembershipRepository"
    credentials: "CredentialRepository"
    checkins: "CheckInRepository"

    def __enter__(self) -> "UnitOfWork":
        ...

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]
