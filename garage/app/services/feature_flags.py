from __future__ import annotations

from sqlalchemy.orm import Session

from garage.app.db.models import GarageFeatureFlag

# Per-garage switches managed from the admin dashboard.
FEATURE_KEYS = (
    "ai_quote_explain",
    "ai_copilot",
    "ai_insights",
    "ai_quote_audit",
    "ai_generate_lines",
    "ai_planning",
    "ai_quick_note",
    "ai_client_message",
)


class UnknownFeature(ValueError):
    """Raised for a feature key outside FEATURE_KEYS."""


def is_feature_enabled(db: Session, garage_id: str, feature_key: str) -> bool:
    """Features are enabled unless a row says otherwise."""
    enabled = (
        db.query(GarageFeatureFlag.enabled)
        .filter(GarageFeatureFlag.garage_id == garage_id, GarageFeatureFlag.feature_key == feature_key)
        .scalar()
    )
    return True if enabled is None else bool(enabled)


def list_feature_flags(db: Session, garage_id: str) -> list[dict]:
    rows = db.query(GarageFeatureFlag).filter(GarageFeatureFlag.garage_id == garage_id).all()
    states = {row.feature_key: row.enabled for row in rows}
    return [{"feature_key": key, "enabled": states.get(key, True)} for key in FEATURE_KEYS]


def set_feature_flag(db: Session, garage_id: str, feature_key: str, enabled: bool) -> GarageFeatureFlag:
    if feature_key not in FEATURE_KEYS:
        raise UnknownFeature(feature_key)

    flag = (
        db.query(GarageFeatureFlag)
        .filter(GarageFeatureFlag.garage_id == garage_id, GarageFeatureFlag.feature_key == feature_key)
        .first()
    )
    if not flag:
        flag = GarageFeatureFlag(garage_id=garage_id, feature_key=feature_key)
        db.add(flag)
    flag.enabled = enabled
    db.flush()
    return flag
