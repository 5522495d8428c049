from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from garage.app.auth.deps import Identity, require_garage
from garage.app.config.settings import settings
from garage.app.db.repo.garages_repo import ensure_garage
from garage.app.db.session import get_db
from garage.app.providers.registry import registry
from garage.app.services.admission import AdmissionController, get_admission_controller
from garage.app.services.ai_events import AiFeature, log_ai_event
from garage.app.services.quota_service import check_ai_quota, current_period, record_ai_usage
from garage.app.services.safe_ai import safe_ai_call

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger("garage")

SYSTEM_PROMPTS = {
    AiFeature.QUOTE_EXPLAIN: "Tu expliques un devis de garage automobile à un client, simplement et sans jargon.",
    AiFeature.AUDIT: "Tu vérifies la cohérence d'un devis de garage (oublis, doublons, prix anormaux).",
    AiFeature.COPILOT: "Tu es l'assistant du garagiste. Réponds brièvement à partir du contexte fourni.",
    AiFeature.INSIGHTS: "Tu proposes des recommandations concrètes à partir des indicateurs du garage.",
    AiFeature.PLANNING_SUGGEST: "Tu proposes un ordre de passage des interventions de l'atelier.",
    AiFeature.QUICK_NOTE: "Tu transformes une note rapide en tâche claire pour l'atelier.",
    AiFeature.CLIENT_MESSAGE: "Tu rédiges un message court et poli destiné au client du garage.",
    AiFeature.GENERATE_QUOTE_LINES: "Tu proposes des lignes de devis (pièces et main d'œuvre) pour la demande décrite.",
}


class AiRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=8000)
    context: dict | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"prompt": "Explique ce devis au client", "context": {"quote_id": "b1f0..."}}
            ]
        }
    }


def _build_messages(feature: AiFeature, body: AiRequest) -> list[dict]:
    messages = [{"role": "system", "content": SYSTEM_PROMPTS[feature]}]
    if body.context:
        messages.append({
            "role": "system",
            "content": "Contexte: " + json.dumps(body.context, ensure_ascii=False, default=str),
        })
    messages.append({"role": "user", "content": body.prompt})
    return messages


@router.get("/quota")
def get_quota(
    identity: Identity = Depends(require_garage),
    db: Session = Depends(get_db),
) -> dict:
    """Current month AI usage for the caller's garage."""
    decision = check_ai_quota(db, identity.garage_id)
    return {"period": current_period(), **decision.to_dict()}


@router.post("/{feature}")
async def run_ai_feature(
    feature: AiFeature,
    body: AiRequest,
    identity: Identity = Depends(require_garage),
    db: Session = Depends(get_db),
    admission: AdmissionController = Depends(get_admission_controller),
) -> dict:
    garage_id = identity.garage_id
    # A missing provider must not consume a rate-limit slot.
    provider = registry.get()
    admission.enforce(db, garage_id, feature)
    ensure_garage(db, garage_id)

    messages = _build_messages(feature, body)
    result = await safe_ai_call(
        lambda: provider.chat_once(messages),
        timeout_seconds=settings.ai_timeout_seconds,
        max_retries=settings.ai_max_retries,
        feature=feature.value,
    )

    if not result.ok:
        log_ai_event(db, garage_id, identity.user_id, feature, "error", result.latency_ms)
        db.commit()
        return {"fallback": True, "error": result.error, "latency_ms": result.latency_ms}

    completion = result.data
    usage_count = record_ai_usage(db, garage_id)
    log_ai_event(
        db,
        garage_id,
        identity.user_id,
        feature,
        "success",
        result.latency_ms,
        tokens_in=completion.tokens_in,
        tokens_out=completion.tokens_out,
    )
    db.commit()
    logger.debug("AI usage recorded", extra={"feature": feature.value, "request_count": usage_count})

    return {
        "content": completion.content,
        "latency_ms": result.latency_ms,
        "usage": completion.usage,
    }
