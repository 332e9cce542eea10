"""Request dependencies shared by the API routers."""
from __future__ import annotations

from functools import lru_cache
from typing import Callable, Optional

from fastapi import Cookie

from ...config import SESSION_COOKIE_NAME
from ..identity import Caller


def _resolve_get_current_caller() -> Callable[..., Caller]:  # pragma: no cover - helper for lazy import
    from ...main import get_current_caller as resolved

    return resolved


@lru_cache(maxsize=1)
def _get_current_caller_callable() -> Callable[..., Caller]:
    return _resolve_get_current_caller()


def get_current_caller(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> Caller:
    resolved = _get_current_caller_callable()
    return resolved(session_token=session_token)
