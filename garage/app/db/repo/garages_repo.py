from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from garage.app.db.models import Garage, GarageSettings


def create_garage(session: Session, garage_id: str, name: Optional[str] = None) -> Garage:
    """Create a garage row."""
    garage = Garage(id=garage_id, name=name)
    session.add(garage)
    session.flush()
    return garage


def get_garage(session: Session, garage_id: str) -> Optional[Garage]:
    """Get a garage by id."""
    return session.query(Garage).filter(Garage.id == garage_id).first()


def ensure_garage(session: Session, garage_id: str, name: Optional[str] = None) -> Garage:
    """Get the garage row, creating it on first sight.

    Tenants are provisioned by the hosting platform; a valid token is enough
    for the backend to start tracking a garage.
    """
    garage = get_garage(session, garage_id)
    if garage is not None:
        return garage
    try:
        with session.begin_nested():
            garage = Garage(id=garage_id, name=name)
            session.add(garage)
    except IntegrityError:
        # Created concurrently by another request.
        garage = get_garage(session, garage_id)
        if garage is None:
            raise
    return garage


def get_settings(session: Session, garage_id: str) -> Optional[GarageSettings]:
    """Get the settings row for a garage, if any."""
    return session.query(GarageSettings).filter(GarageSettings.garage_id == garage_id).first()


def get_monthly_quota(session: Session, garage_id: str) -> Optional[int]:
    """Configured monthly AI ceiling; None when unset (unlimited)."""
    quota = (
        session.query(GarageSettings.ai_monthly_quota)
        .filter(GarageSettings.garage_id == garage_id)
        .scalar()
    )
    return quota


def set_monthly_quota(session: Session, garage_id: str, quota: Optional[int]) -> GarageSettings:
    """Set (or clear with None) the monthly AI ceiling."""
    row = get_settings(session, garage_id)
    if row is None:
        row = GarageSettings(garage_id=garage_id)
        session.add(row)
    row.ai_monthly_quota = quota
    session.flush()
    return row
