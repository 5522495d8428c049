"""Admission control for AI features.

Checks run cheapest first and the first denial wins:

1. per-garage rate limiter (in memory, no database round trip)
2. per-garage feature flag
3. monthly quota

Usage is never incremented here; `record_ai_usage` runs once the AI call succeeded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from garage.app.config.settings import settings
from garage.app.core.errors import FeatureDisabled, QuotaExceeded, QuotaUnavailable, RateLimited
from garage.app.services.ai_events import AiFeature
from garage.app.services.feature_flags import is_feature_enabled
from garage.app.services.quota_service import QuotaDecision, check_ai_quota
from garage.app.services.rate_limit import RateLimiter, get_rate_limiter

logger = logging.getLogger("garage.admission")


class AdmissionReason(str, Enum):
    RATE_LIMITED = "rate_limited"
    FEATURE_DISABLED = "feature_disabled"
    QUOTA_EXCEEDED = "quota_exceeded"
    QUOTA_UNAVAILABLE = "quota_unavailable"


@dataclass
class AdmissionDecision:
    allowed: bool
    reason: Optional[AdmissionReason] = None
    quota: Optional[QuotaDecision] = None


class AdmissionController:
    def __init__(self, rate_limiter: RateLimiter, fail_open: bool = False):
        self.rate_limiter = rate_limiter
        self.fail_open = fail_open

    def evaluate(self, db: Session, garage_id: str, feature: AiFeature) -> AdmissionDecision:
        if not self.rate_limiter.check_and_consume(garage_id):
            return AdmissionDecision(allowed=False, reason=AdmissionReason.RATE_LIMITED)

        # Flag and quota share the database; an outage of either follows the quota policy.
        try:
            if not is_feature_enabled(db, garage_id, feature.flag_key):
                return AdmissionDecision(allowed=False, reason=AdmissionReason.FEATURE_DISABLED)
            quota = check_ai_quota(db, garage_id)
        except SQLAlchemyError:
            logger.error("AI feature flag read failed", extra={"garage_id": garage_id}, exc_info=True)
            return self._unavailable(garage_id)
        except QuotaUnavailable:
            return self._unavailable(garage_id)

        if not quota.allowed:
            return AdmissionDecision(allowed=False, reason=AdmissionReason.QUOTA_EXCEEDED, quota=quota)
        return AdmissionDecision(allowed=True, quota=quota)

    def _unavailable(self, garage_id: str) -> AdmissionDecision:
        if self.fail_open:
            logger.warning("AI quota unavailable, admitting request", extra={"garage_id": garage_id})
            return AdmissionDecision(allowed=True)
        return AdmissionDecision(allowed=False, reason=AdmissionReason.QUOTA_UNAVAILABLE)

    def enforce(self, db: Session, garage_id: str, feature: AiFeature) -> Optional[QuotaDecision]:
        """Raise the matching APIError unless the request is admitted."""
        decision = self.evaluate(db, garage_id, feature)
        if decision.allowed:
            return decision.quota

        logger.info(
            "AI request denied",
            extra={"garage_id": garage_id, "feature": feature.value, "reason": decision.reason.value},
        )
        if decision.reason is AdmissionReason.RATE_LIMITED:
            raise RateLimited()
        if decision.reason is AdmissionReason.FEATURE_DISABLED:
            raise FeatureDisabled()
        if decision.reason is AdmissionReason.QUOTA_EXCEEDED:
            raise QuotaExceeded(detail={
                "quota_exceeded": True,
                "current": decision.quota.current,
                "limit": decision.quota.limit,
            })
        raise QuotaUnavailable()


def get_admission_controller() -> AdmissionController:
    """FastAPI dependency wired to the process-wide limiter."""
    return AdmissionController(get_rate_limiter(), fail_open=settings.ai_quota_fail_open)
