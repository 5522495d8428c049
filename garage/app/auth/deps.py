from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from garage.app.core.logging import garage_id_var
from garage.app.core.security import decode_access_token


@dataclass
class Identity:
    """Caller identity taken from a platform-issued access token."""

    user_id: str
    garage_id: str | None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _get_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not isinstance(authorization, str):
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        token = parts[1].strip()
        return token or None
    return None


async def get_current_identity(authorization: str | None = Header(default=None)) -> Identity:
    """Resolve the caller from the Authorization bearer token."""
    token = _get_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail={"code": "AUTH_REQUIRED", "message": "Authentication required"})

    try:
        payload = decode_access_token(token)
    except ValueError as exc:
        code = "AUTH_INVALID"
        if str(exc) == "TOKEN_EXPIRED":
            code = "AUTH_EXPIRED"
        raise HTTPException(status_code=401, detail={"code": code, "message": "Invalid or expired token"}) from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail={"code": "AUTH_INVALID", "message": "Invalid token payload"})

    garage_id = payload.get("garage_id") or None
    if garage_id:
        garage_id_var.set(str(garage_id))

    return Identity(
        user_id=str(user_id),
        garage_id=str(garage_id) if garage_id else None,
        role=str(payload.get("role") or "user"),
    )


def require_garage(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Require a caller attached to a garage (tenant)."""
    if not identity.garage_id:
        raise HTTPException(status_code=403, detail={"code": "GARAGE_REQUIRED", "message": "No garage attached to this account"})
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Require a platform admin."""
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail={"code": "ADMIN_REQUIRED", "message": "Admin access required"})
    return identity
