from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from garage.app.core.errors import QuotaUnavailable
from garage.app.db.models import AiUsage, Garage
from garage.app.db.repo.garages_repo import get_monthly_quota

logger = logging.getLogger("garage.quota")


@dataclass
class QuotaDecision:
    allowed: bool
    current: Optional[int] = None
    limit: Optional[int] = None  # None = unlimited

    def to_dict(self) -> dict:
        data: dict = {"allowed": self.allowed}
        if self.current is not None:
            data["current"] = self.current
        if self.limit is not None:
            data["limit"] = self.limit
        return data


def current_period(now: Optional[datetime] = None) -> str:
    """Usage period key in server local time: YYYY-MM.

    Checks and increments must both go through this function or they drift apart.
    """
    if now is None:
        now = datetime.now()
    return f"{now.year:04d}-{now.month:02d}"


def recent_periods(months_back: int = 12, now: Optional[datetime] = None) -> list[str]:
    """The last `months_back` periods, current one first."""
    if now is None:
        now = datetime.now()
    periods = []
    year, month = now.year, now.month
    for _ in range(months_back):
        periods.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return periods


def _get_request_count(db: Session, garage_id: str, period: str) -> int:
    count = (
        db.query(AiUsage.request_count)
        .filter(AiUsage.garage_id == garage_id, AiUsage.period == period)
        .scalar()
    )
    return count or 0


def check_ai_quota(db: Session, garage_id: str, now: Optional[datetime] = None) -> QuotaDecision:
    """Check whether the garage may issue another AI request this month.

    Read-only. Raises QuotaUnavailable when the settings or usage cannot be read;
    the caller decides whether that fails open or closed.
    """
    period = current_period(now)
    try:
        quota = get_monthly_quota(db, garage_id)
        if quota is None:
            return QuotaDecision(allowed=True)

        current = _get_request_count(db, garage_id, period)
    except SQLAlchemyError as exc:
        logger.error("AI quota read failed", extra={"garage_id": garage_id, "period": period}, exc_info=True)
        raise QuotaUnavailable() from exc

    if current >= quota:
        return QuotaDecision(allowed=False, current=current, limit=quota)
    return QuotaDecision(allowed=True, current=current, limit=quota)


def _increment(db: Session, garage_id: str, period: str) -> int:
    return (
        db.query(AiUsage)
        .filter(AiUsage.garage_id == garage_id, AiUsage.period == period)
        .update({AiUsage.request_count: AiUsage.request_count + 1}, synchronize_session=False)
    )


def record_ai_usage(db: Session, garage_id: str, now: Optional[datetime] = None) -> int:
    """Count one successful AI request for the current period. Returns the new count.

    The increment happens in SQL so concurrent recorders do not lose updates.
    """
    period = current_period(now)
    if not _increment(db, garage_id, period):
        try:
            with db.begin_nested():
                db.add(AiUsage(garage_id=garage_id, period=period, request_count=1))
        except IntegrityError:
            # Another request created the row first.
            if not _increment(db, garage_id, period):
                raise
    db.flush()
    return _get_request_count(db, garage_id, period)


def get_usage_history(db: Session, months_back: int = 12, now: Optional[datetime] = None) -> list[dict]:
    """Usage rows for the last `months_back` periods with garage names, newest period first."""
    periods = recent_periods(months_back, now)
    rows = (
        db.query(AiUsage.garage_id, AiUsage.period, AiUsage.request_count, Garage.name)
        .outerjoin(Garage, Garage.id == AiUsage.garage_id)
        .filter(AiUsage.period.in_(periods))
        .order_by(AiUsage.period.desc(), AiUsage.garage_id)
        .all()
    )
    return [
        {
            "garage_id": garage_id,
            "period": period,
            "request_count": request_count,
            "garage_name": name,
        }
        for garage_id, period, request_count, name in rows
    ]
