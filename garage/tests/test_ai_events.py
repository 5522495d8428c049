import json
import logging
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from garage.app.core.logging import JSONFormatter, garage_id_var, request_id_var
from garage.app.db.models import AiEvent
from garage.app.services.ai_events import AiFeature, log_ai_event
from garage.app.services.feature_flags import FEATURE_KEYS


def test_every_feature_maps_to_a_flag():
    assert sorted(feature.flag_key for feature in AiFeature) == sorted(FEATURE_KEYS)


def test_log_ai_event_inserts_row(db_session, garages, caplog):
    garage_id, _ = garages

    with caplog.at_level(logging.INFO, logger="garage.ai"):
        log_ai_event(db_session, garage_id, "user-1", AiFeature.GENERATE_QUOTE_LINES, "success", 840, 120, 60)
    db_session.commit()

    event = db_session.query(AiEvent).one()
    assert event.garage_id == garage_id
    assert event.feature == "generate_quote_lines"
    assert event.latency_ms == 840
    assert event.tokens_in == 120
    assert event.tokens_out == 60
    assert event.created_at is not None
    assert "[AI] generate_quote_lines success 840ms" in caplog.text


def test_log_ai_event_swallows_insert_failure(caplog):
    db = MagicMock()
    db.begin_nested.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

    with caplog.at_level(logging.WARNING, logger="garage.ai"):
        log_ai_event(db, "g1", None, AiFeature.COPILOT, "error", 12)

    assert "AI event insert failed" in caplog.text


def test_json_formatter_includes_context():
    record = logging.LogRecord("garage.quota", logging.WARNING, __file__, 10, "quota read failed", None, None)
    record.period = "2025-03"

    req_token = request_id_var.set("req-123")
    garage_token = garage_id_var.set("garage-1")
    try:
        payload = json.loads(JSONFormatter().format(record))
    finally:
        request_id_var.reset(req_token)
        garage_id_var.reset(garage_token)

    assert payload["level"] == "WARNING"
    assert payload["msg"] == "quota read failed"
    assert payload["logger"] == "garage.quota"
    assert payload["request_id"] == "req-123"
    assert payload["garage_id"] == "garage-1"
    assert payload["period"] == "2025-03"
