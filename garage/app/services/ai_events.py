from __future__ import annotations

import logging
from enum import Enum
from typing import Literal, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from garage.app.db.models import AiEvent

logger = logging.getLogger("garage.ai")


class AiFeature(str, Enum):
    QUOTE_EXPLAIN = "quote_explain"
    AUDIT = "audit"
    COPILOT = "copilot"
    INSIGHTS = "insights"
    PLANNING_SUGGEST = "planning_suggest"
    QUICK_NOTE = "quick_note"
    CLIENT_MESSAGE = "client_message"
    GENERATE_QUOTE_LINES = "generate_quote_lines"

    @property
    def flag_key(self) -> str:
        """Feature flag guarding this AI feature."""
        return _FLAG_KEYS[self]


_FLAG_KEYS = {
    AiFeature.QUOTE_EXPLAIN: "ai_quote_explain",
    AiFeature.AUDIT: "ai_quote_audit",
    AiFeature.COPILOT: "ai_copilot",
    AiFeature.INSIGHTS: "ai_insights",
    AiFeature.PLANNING_SUGGEST: "ai_planning",
    AiFeature.QUICK_NOTE: "ai_quick_note",
    AiFeature.CLIENT_MESSAGE: "ai_client_message",
    AiFeature.GENERATE_QUOTE_LINES: "ai_generate_lines",
}


def log_ai_event(
    db: Session,
    garage_id: str,
    user_id: Optional[str],
    feature: AiFeature,
    status: Literal["success", "error"],
    latency_ms: int,
    tokens_in: Optional[int] = None,
    tokens_out: Optional[int] = None,
) -> None:
    """Log an AI call outcome and store it in ai_events.

    A failed insert is logged and dropped; it must never fail the request.
    """
    logger.info(
        f"[AI] {feature.value} {status} {latency_ms}ms",
        extra={
            "garage_id": garage_id,
            "feature": feature.value,
            "status": status,
            "latency_ms": latency_ms,
        },
    )

    try:
        with db.begin_nested():
            db.add(
                AiEvent(
                    garage_id=garage_id,
                    user_id=user_id,
                    feature=feature.value,
                    status=status,
                    latency_ms=latency_ms,
                    tokens_in=tokens_in,
                    tokens_out=tokens_out,
                )
            )
    except SQLAlchemyError:
        logger.warning("AI event insert failed", extra={"garage_id": garage_id, "feature": feature.value})
