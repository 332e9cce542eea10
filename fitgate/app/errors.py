"""Service level exceptions surfaced to API callers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass
class ServiceError(Exception):
    """Represents a synchronous, actionable rejection of a request."""

    message: str
    code: str = "service_error"
    detail: Optional[Mapping[str, Any]] = None

    status_code: ClassVar[int] = status.HTTP_400_BAD_REQUEST

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


@dataclass
class ValidationError(ServiceError):
    code: str = "validation_failed"
    status_code: ClassVar[int] = status.HTTP_400_BAD_REQUEST


@dataclass
class UnauthenticatedError(ServiceError):
    code: str = "unauthenticated"
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED


@dataclass
class ForbiddenError(ServiceError):
    code: str = "forbidden"
    status_code: ClassVar[int] = status.HTTP_403_FORBIDDEN


@dataclass
class NotFoundError(ServiceError):
    code: str = "not_found"
    status_code: ClassVar[int] = status.HTTP_404_NOT_FOUND


@dataclass
class ConflictError(ServiceError):
    code: str = "conflict"
    status_code: ClassVar[int] = status.HTTP_409_CONFLICT


class DuplicateActiveRecord(Exception):
    """Raised by repositories when a one-active-per-owner index rejects a write."""

    def __init__(self, constraint: str) -> None:
        super().__init__(f"Unique constraint violated: {constraint}")
        self.constraint = constraint


__all__ = [
    "ConflictError",
    "DuplicateActiveRecord",
    "ForbiddenError",
    "NotFoundError",
    "ServiceError",
    "UnauthenticatedError",
    "ValidationError",
]
