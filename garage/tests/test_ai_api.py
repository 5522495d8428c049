from unittest.mock import Mock

import httpx
from sqlalchemy.exc import OperationalError

from garage.app.db.models import AiEvent, AiUsage, Garage
from garage.app.db.session import get_db
from garage.app.main import app
from garage.app.providers.registry import registry
from garage.app.services.feature_flags import set_feature_flag
from garage.app.services.quota_service import current_period
from garage.app.services.safe_ai import UNAVAILABLE_MESSAGE


def test_ai_feature_success_records_usage(client, db_session, garages, auth_headers, fake_provider):
    garage_id, _ = garages

    response = client.post(
        "/ai/quote_explain",
        json={"prompt": "Explique ce devis", "context": {"total_ttc": 420.5}},
        headers=auth_headers(garage_id),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["content"] == "Voici l'explication du devis."
    assert data["usage"]["total_tokens"] == 19
    assert isinstance(data["latency_ms"], int)

    messages = fake_provider.calls[0]
    assert messages[0]["role"] == "system"
    assert "420.5" in messages[1]["content"]
    assert messages[-1] == {"role": "user", "content": "Explique ce devis"}

    usage = db_session.query(AiUsage).filter(AiUsage.garage_id == garage_id).one()
    assert usage.period == current_period()
    assert usage.request_count == 1

    event = db_session.query(AiEvent).one()
    assert event.feature == "quote_explain"
    assert event.status == "success"
    assert event.user_id == "user-1"
    assert event.tokens_in == 12
    assert event.tokens_out == 7


def test_quota_endpoint_reports_usage(client, garages, auth_headers):
    garage_id, other_id = garages
    client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers=auth_headers(garage_id))

    response = client.get("/ai/quota", headers=auth_headers(garage_id))
    assert response.status_code == 200
    assert response.json() == {"period": current_period(), "allowed": True, "current": 1, "limit": 3}

    response = client.get("/ai/quota", headers=auth_headers(other_id))
    assert response.json() == {"period": current_period(), "allowed": True}


def test_quota_exceeded_after_monthly_limit(client, garages, auth_headers, fake_provider):
    garage_id, _ = garages
    headers = auth_headers(garage_id)

    for _ in range(3):
        response = client.post("/ai/insights", json={"prompt": "Analyse"}, headers=headers)
        assert response.status_code == 200

    response = client.post("/ai/insights", json={"prompt": "Analyse"}, headers=headers)
    assert response.status_code == 429
    data = response.json()
    assert data["code"] == "QUOTA_EXCEEDED"
    assert data["quota_exceeded"] is True
    assert data["current"] == 3
    assert data["limit"] == 3
    assert "request_id" in data
    assert "Retry-After" not in response.headers
    assert len(fake_provider.calls) == 3


def test_rate_limited_after_burst(client, garages, auth_headers, fake_provider):
    _, other_id = garages
    headers = auth_headers(other_id)

    for _ in range(10):
        assert client.post("/ai/audit", json={"prompt": "Vérifie"}, headers=headers).status_code == 200

    response = client.post("/ai/audit", json={"prompt": "Vérifie"}, headers=headers)
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.headers["Retry-After"] == "60"
    assert len(fake_provider.calls) == 10


def test_rate_limit_recovers_after_window(client, garages, auth_headers, clock):
    _, other_id = garages
    headers = auth_headers(other_id)
    for _ in range(10):
        client.post("/ai/quick_note", json={"prompt": "Note"}, headers=headers)
    assert client.post("/ai/quick_note", json={"prompt": "Note"}, headers=headers).status_code == 429

    clock.advance(61)
    assert client.post("/ai/quick_note", json={"prompt": "Note"}, headers=headers).status_code == 200


def test_disabled_feature_returns_403(client, db_session, garages, auth_headers, fake_provider):
    garage_id, _ = garages
    set_feature_flag(db_session, garage_id, "ai_client_message", False)
    db_session.commit()

    response = client.post("/ai/client_message", json={"prompt": "Relance"}, headers=auth_headers(garage_id))

    assert response.status_code == 403
    assert response.json()["code"] == "FEATURE_DISABLED"
    assert fake_provider.calls == []


def test_provider_failure_returns_fallback(client, db_session, garages, auth_headers, fake_provider):
    garage_id, _ = garages
    fake_provider.error = httpx.ConnectError("connection refused")

    response = client.post("/ai/planning_suggest", json={"prompt": "Planning"}, headers=auth_headers(garage_id))

    assert response.status_code == 200
    data = response.json()
    assert data["fallback"] is True
    assert data["error"] == UNAVAILABLE_MESSAGE
    assert "connection refused" not in response.text

    assert db_session.query(AiUsage).count() == 0
    event = db_session.query(AiEvent).one()
    assert event.status == "error"
    assert event.feature == "planning_suggest"
    assert event.tokens_in is None


def test_ai_requires_authentication(client, garages):
    response = client.post("/ai/copilot", json={"prompt": "Bonjour"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_REQUIRED"

    response = client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_INVALID"


def test_ai_requires_garage_claim(client, garages, auth_headers):
    response = client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers=auth_headers(garage_id=None))
    assert response.status_code == 403
    assert response.json()["code"] == "GARAGE_REQUIRED"


def test_unknown_feature_is_validation_error(client, garages, auth_headers):
    garage_id, _ = garages
    response = client.post("/ai/horoscope", json={"prompt": "?"}, headers=auth_headers(garage_id))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_empty_prompt_is_validation_error(client, garages, auth_headers):
    garage_id, _ = garages
    response = client.post("/ai/copilot", json={"prompt": ""}, headers=auth_headers(garage_id))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_no_provider_configured(client, garages, auth_headers, rate_limiter):
    garage_id, _ = garages
    registry.clear()

    response = client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers=auth_headers(garage_id))

    assert response.status_code == 503
    assert response.json()["code"] == "AI_NOT_CONFIGURED"
    # No rate-limit slot was spent
    assert rate_limiter.store.get(garage_id) is None


NEW_GARAGE_ID = "33333333-3333-3333-3333-333333333333"


def test_garage_without_row_is_tracked_on_first_call(client, db_session, garages, auth_headers):
    headers = auth_headers(NEW_GARAGE_ID)

    response = client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers=headers)
    assert response.status_code == 200
    assert client.post("/ai/copilot", json={"prompt": "Encore"}, headers=headers).status_code == 200

    assert db_session.query(Garage).filter(Garage.id == NEW_GARAGE_ID).count() == 1
    usage = db_session.query(AiUsage).filter(AiUsage.garage_id == NEW_GARAGE_ID).one()
    assert usage.request_count == 2
    assert db_session.query(AiEvent).filter(AiEvent.garage_id == NEW_GARAGE_ID).count() == 2


def test_garage_without_row_logs_failed_call(client, db_session, garages, auth_headers, fake_provider):
    fake_provider.error = httpx.ConnectError("connection refused")

    response = client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers=auth_headers(NEW_GARAGE_ID))

    assert response.status_code == 200
    assert response.json()["fallback"] is True
    event = db_session.query(AiEvent).filter(AiEvent.garage_id == NEW_GARAGE_ID).one()
    assert event.status == "error"


def test_database_outage_returns_quota_unavailable(client, garages, auth_headers, fake_provider):
    garage_id, _ = garages
    broken = Mock()
    broken.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
    app.dependency_overrides[get_db] = lambda: broken

    response = client.post("/ai/copilot", json={"prompt": "Bonjour"}, headers=auth_headers(garage_id))

    assert response.status_code == 503
    assert response.json()["code"] == "QUOTA_UNAVAILABLE"
    assert fake_provider.calls == []
