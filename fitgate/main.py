import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import psycopg2
import psycopg2.extras
from fastapi import Cookie, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from jose import JWTError, jwt

from .app.identity import Caller
from .app.routes.checkins import router as checkins_router
from .app.routes.gyms import router as gyms_router
from .app.routes.memberships import router as memberships_router
from .app.routes.orders import router as orders_router
from .config import (
    APPLY_SCHEMA_ON_STARTUP,
    CORS_ORIGINS,
    JWT_ALGORITHM,
    JWT_EXP_MINUTES,
    JWT_SECRET_KEY,
    SESSION_COOKIE_NAME,
)
from .db import ensure_schema, managed_connection

logger = logging.getLogger(__name__)

PERMISSIONS_CLAIM = "permissions"


def create_access_token(
    *,
    subject: str,
    expires_delta: Optional[timedelta] = None,
    permissions: Optional[Iterable[str]] = None,
) -> str:
    payload = {"sub": subject}
    if expires_delta is None:
        expires_delta = timedelta(minutes=JWT_EXP_MINUTES)
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    if permissions:
        payload[PERMISSIONS_CLAIM] = sorted(set(permissions))
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def get_user_by_id(user_id: str) -> Optional[dict]:
    with managed_connection() as (conn, _managed), conn.cursor(
        cursor_factory=psycopg2.extras.RealDictCursor
    ) as cur:
        cur.execute(
            "SELECT id::text AS id, email, role FROM users WHERE id::text = %s",
            (user_id,),
        )
        row = cur.fetchone()
    return dict(row) if row else None


def _claimed_permissions(payload: dict) -> List[str]:
    claimed = payload.get(PERMISSIONS_CLAIM) or []
    if not isinstance(claimed, list):
        return []
    return [str(permission) for permission in claimed]


def resolve_caller_from_session_token(session_token: str) -> Optional[Caller]:
    try:
        payload = jwt.decode(session_token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None

    user = get_user_by_id(str(subject))
    if user is None:
        return None
    role = (user.get("role") or "").strip().lower()
    return Caller(
        user_id=str(user["id"]),
        email=user.get("email"),
        roles=frozenset({role}) if role else frozenset(),
        permissions=frozenset(_claimed_permissions(payload)),
    )


def get_current_caller(session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)) -> Caller:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    caller = resolve_caller_from_session_token(session_token)
    if caller is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return caller


app = FastAPI(title="Fitgate API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders_router)
app.include_router(memberships_router)
app.include_router(checkins_router)
app.include_router(gyms_router)


@app.on_event("startup")
def apply_schema() -> None:
    if not APPLY_SCHEMA_ON_STARTUP:
        return
    try:
        ensure_schema()
    except psycopg2.Error:
        logger.exception("Failed to apply database schema on startup")
        raise


@app.get("/api/healthz")
def healthz():
    return {"ok": True}
