from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from garage.app.auth.audit import write_audit
from garage.app.auth.deps import Identity, require_admin
from garage.app.db.models import AdminAuditLog
from garage.app.db.repo.garages_repo import ensure_garage, get_garage, get_settings, set_monthly_quota
from garage.app.db.session import get_db
from garage.app.services.feature_flags import UnknownFeature, list_feature_flags, set_feature_flag
from garage.app.services.quota_service import check_ai_quota, current_period, get_usage_history

router = APIRouter(prefix="/admin", tags=["admin"])


class UpsertGarageRequest(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    name: str | None = Field(default=None, max_length=255)


class UpdateQuotaRequest(BaseModel):
    ai_monthly_quota: int | None = Field(default=None, ge=0)


class UpdateFeatureFlagRequest(BaseModel):
    enabled: bool


def _require_garage_row(db: Session, garage_id: str) -> None:
    if not get_garage(db, garage_id):
        raise HTTPException(status_code=404, detail={"code": "GARAGE_NOT_FOUND", "message": "Garage not found"})


def _quota_payload(db: Session, garage_id: str) -> dict:
    row = get_settings(db, garage_id)
    decision = check_ai_quota(db, garage_id)
    return {
        "garage_id": garage_id,
        "ai_monthly_quota": row.ai_monthly_quota if row else None,
        "period": current_period(),
        "current": decision.current,
        "allowed": decision.allowed,
        "updated_at": row.updated_at.isoformat() if row and row.updated_at else None,
    }


@router.get("/ai-usage")
def list_ai_usage(
    months_back: int = Query(default=12, ge=1, le=36),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """AI request counts per garage for the last `months_back` periods (admin only)."""
    return {"usage": get_usage_history(db, months_back=months_back)}


@router.post("/garages")
def upsert_garage(
    request: Request,
    body: UpsertGarageRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """Register a garage ahead of its first AI call, or rename it (admin only)."""
    garage = ensure_garage(db, body.id, name=body.name)
    if body.name is not None:
        garage.name = body.name
    write_audit(db, admin.user_id, "garage.upsert", "garages", body.id, request, details={"name": body.name})
    db.commit()

    return {"id": garage.id, "name": garage.name, "created_at": garage.created_at.isoformat()}


@router.get("/garages/{garage_id}/quota")
def get_garage_quota(
    garage_id: str,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """Get a garage's monthly AI quota and current usage (admin only)."""
    _require_garage_row(db, garage_id)
    return _quota_payload(db, garage_id)


@router.put("/garages/{garage_id}/quota")
def update_garage_quota(
    garage_id: str,
    request: Request,
    body: UpdateQuotaRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """Set or clear (null = unlimited) a garage's monthly AI quota (admin only)."""
    _require_garage_row(db, garage_id)

    set_monthly_quota(db, garage_id, body.ai_monthly_quota)
    write_audit(
        db,
        admin.user_id,
        "quota.update",
        "garage_settings",
        garage_id,
        request,
        details={"ai_monthly_quota": body.ai_monthly_quota},
    )
    db.commit()

    return _quota_payload(db, garage_id)


@router.get("/garages/{garage_id}/feature-flags")
def get_feature_flags(
    garage_id: str,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """List AI feature flags for a garage (admin only)."""
    _require_garage_row(db, garage_id)
    return {"garage_id": garage_id, "flags": list_feature_flags(db, garage_id)}


@router.put("/garages/{garage_id}/feature-flags/{feature_key}")
def update_feature_flag(
    garage_id: str,
    feature_key: str,
    request: Request,
    body: UpdateFeatureFlagRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """Enable or disable one AI feature for a garage (admin only)."""
    _require_garage_row(db, garage_id)

    try:
        flag = set_feature_flag(db, garage_id, feature_key, body.enabled)
    except UnknownFeature:
        raise HTTPException(status_code=400, detail={"code": "UNKNOWN_FEATURE", "message": f"Unknown feature: {feature_key}"})

    write_audit(
        db,
        admin.user_id,
        "feature_flag.update",
        "garage_feature_flags",
        garage_id,
        request,
        details={"feature_key": feature_key, "enabled": body.enabled},
    )
    db.commit()

    return {"garage_id": garage_id, "feature_key": flag.feature_key, "enabled": flag.enabled}


@router.get("/audit")
def get_audit_log(
    action: str | None = None,
    entity_id: str | None = None,
    limit: int = 100,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    """Get admin audit log entries, newest first (admin only)."""
    if limit > 200:
        limit = 200

    query = db.query(AdminAuditLog)
    if action:
        query = query.filter(AdminAuditLog.action == action)
    if entity_id:
        query = query.filter(AdminAuditLog.entity_id == entity_id)

    entries = query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc()).limit(limit).all()

    return {
        "entries": [
            {
                "id": entry.id,
                "admin_user_id": entry.admin_user_id,
                "action": entry.action,
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "details": entry.details,
                "ip": entry.ip,
                "user_agent": entry.user_agent,
                "created_at": entry.created_at.isoformat(),
            }
            for entry in entries
        ]
    }
