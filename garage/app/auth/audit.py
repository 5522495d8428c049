from __future__ import annotations

from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from garage.app.db.models import AdminAuditLog


def write_audit(
    db: Session,
    admin_user_id: str,
    action: str,
    entity_type: str | None,
    entity_id: str | None,
    request: Request,
    details: dict[str, Any] | None = None,
) -> AdminAuditLog:
    """Write an admin audit log entry; committed with the surrounding transaction."""
    ip = request.client.host if request.client else None
    # Behind the hosting proxy the first forwarded address is the caller.
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()

    entry = AdminAuditLog(
        admin_user_id=admin_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip=ip,
        user_agent=request.headers.get("User-Agent"),
    )
    db.add(entry)
    return entry
