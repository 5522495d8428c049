"""Core security helpers facade."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
import uuid

import jwt
from jwt import InvalidTokenError, ExpiredSignatureError

from garage.app.config.settings import settings
from garage.app.security.cors import cors_kwargs


def create_access_token(user_id: str, garage_id: str | None, role: str = "user") -> tuple[str, int]:
    """Create a JWT access token and return (token, expires_in).

    Production tokens come from the hosted auth platform; this mirrors their
    claims for local tooling and tests.
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=settings.jwt_access_ttl_seconds)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if garage_id:
        payload["garage_id"] = garage_id
    token = jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    return token, settings.jwt_access_ttl_seconds


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT access token."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except ExpiredSignatureError as exc:
        raise ValueError("TOKEN_EXPIRED") from exc
    except InvalidTokenError as exc:
        raise ValueError("TOKEN_INVALID") from exc


__all__ = [
    "cors_kwargs",
    "create_access_token",
    "decode_access_token",
]
