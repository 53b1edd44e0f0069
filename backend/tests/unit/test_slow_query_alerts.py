import itertools
from typing import Any, Dict, List

import pytest
from flask import Flask, g
from sqlalchemy import create_engine, text

from clinic.core import db as slow_db


@pytest.fixture(autouse=True)
def enable_alerts(monkeypatch):
    monkeypatch.setenv("ALERT_SLOW_QUERY_ENABLED", "true")
    monkeypatch.setenv("ALERT_QUERY_MS_THRESHOLD", "50")


@pytest.fixture
def instrumented_engine():
    engine = create_engine("sqlite:///:memory:")
    slow_db.register_query_timing(engine)
    return engine


def _capture_logger_calls(monkeypatch) -> List[Dict[str, Any]]:
    records: List[Dict[str, Any]] = []

    def record_warning(message: str, *args, **kwargs):
        records.append(
            {
                "message": message,
                "context": kwargs.get("extra", {}).get("context"),
            }
        )

    monkeypatch.setattr(slow_db.logger, "warning", record_warning)
    return records


@pytest.mark.unit
def test_slow_query_alert_includes_request_context(monkeypatch, instrumented_engine):
    records = _capture_logger_calls(monkeypatch)
    perf_values = itertools.cycle([1.0, 1.25])
    monkeypatch.setattr(slow_db.time, "perf_counter", lambda: next(perf_values))

    app = Flask(__name__)
    with app.test_request_context("/api/appointments", method="POST"):
        g.request_id = "req-123"
        g.route = "appointments.book_appointment"

        with instrumented_engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    assert len(records) == 1
    payload = records[0]["context"]
    assert payload["alert_type"] == "slow_query"
    assert payload["duration_ms"] == 250.0
    assert payload["context"]["request_id"] == "req-123"
    assert payload["context"]["route"] == "appointments.book_appointment"


@pytest.mark.unit
def test_transaction_reference_is_masked(monkeypatch, instrumented_engine):
    records = _capture_logger_calls(monkeypatch)
    perf_values = itertools.cycle([1.0, 1.2])
    monkeypatch.setattr(slow_db.time, "perf_counter", lambda: next(perf_values))

    with instrumented_engine.connect() as conn:
        conn.execute(
            text("SELECT :amount AS amount, :transaction_ref AS transaction_ref"),
            {"amount": "100.00", "transaction_ref": "AUTH-83721"},
        )

    assert len(records) == 1
    params = records[0]["context"]["params"]
    assert params["amount"] == "100.00"
    assert params["transaction_ref"] == "***"


@pytest.mark.unit
def test_threshold_reflects_environment(monkeypatch, instrumented_engine):
    records = _capture_logger_calls(monkeypatch)
    perf_values = iter([1.0, 1.1, 2.0, 2.1])
    monkeypatch.setattr(slow_db.time, "perf_counter", lambda: next(perf_values))

    monkeypatch.setenv("ALERT_QUERY_MS_THRESHOLD", "150")
    with instrumented_engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    assert not records

    monkeypatch.setenv("ALERT_QUERY_MS_THRESHOLD", "50")
    with instrumented_engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    assert len(records) == 1


@pytest.mark.unit
def test_disabled_alerts_emit_nothing(monkeypatch, instrumented_engine):
    records = _capture_logger_calls(monkeypatch)
    monkeypatch.setenv("ALERT_SLOW_QUERY_ENABLED", "false")
    perf_values = itertools.cycle([1.0, 2.0])
    monkeypatch.setattr(slow_db.time, "perf_counter", lambda: next(perf_values))

    with instrumented_engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    assert records == []


@pytest.mark.unit
def test_patient_contact_params_are_masked():
    masked = slow_db.mask_params(
        [{"first_name": "Ana", "email": "ana@example.com", "phone": "+55 11 5555-0000"}]
    )
    assert masked == [{"first_name": "Ana", "email": "***", "phone": "***"}]


@pytest.mark.unit
@pytest.mark.parametrize(
    "statement,target",
    [
        ("SELECT invoices.id FROM invoices WHERE invoices.id = ?", "SELECT invoices"),
        ("UPDATE invoices SET status=? WHERE invoices.id = ?", "UPDATE invoices"),
        ('INSERT INTO "payments" (invoice_id) VALUES (?)', "INSERT payments"),
        ("PRAGMA table_info(appointments)", None),
    ],
)
def test_statement_target(statement, target):
    assert slow_db.statement_target(statement) == target
