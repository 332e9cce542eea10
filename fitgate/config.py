"""Environment driven settings shared by the application."""
from __future__ import annotations

import math
import os

from dotenv import load_dotenv

load_dotenv()


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "fitgate_db"),
    user=os.getenv("DB_USER", "fitgate"),
    password=os.getenv("DB_PASSWORD", "fitgate"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXP_MINUTES = int(os.getenv("JWT_EXP_MINUTES", str(60 * 24 * 7)))  # default: 7 days
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

# Bytes of entropy behind every gym access credential.
CREDENTIAL_TOKEN_BYTES = int(os.getenv("CREDENTIAL_TOKEN_BYTES", "32"))
CHECKIN_HISTORY_DEFAULT_DAYS = int(os.getenv("CHECKIN_HISTORY_DEFAULT_DAYS", "30"))
APPLY_SCHEMA_ON_STARTUP = os.getenv("APPLY_SCHEMA_ON_STARTUP", "1").lower() in {"1", "true", "yes"}
CHECKIN_HISTORY_MAX_DAYS = int(os.getenv("CHECKIN_HISTORY_MAX_DAYS", "3650"))
CREDENTIAL_MAX_TTL_MINUTES = int(os.getenv("CREDENTIAL_MAX_TTL_MINUTES", str(60 * 24 * 365)))  # default: 1 year
