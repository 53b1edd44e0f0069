"""
Slow query alerts.

Every engine built by ``clinic.db.session`` gets cursor listeners that time
each statement and log a ``slow_query`` warning on ``sql.alerts`` once the
duration passes ``ALERT_QUERY_MS_THRESHOLD``. Bound parameters are logged
with payment references and patient contact data masked.
"""

import logging
import re
import time
from typing import Any, Dict, Optional

from flask import g, has_request_context
from sqlalchemy import event
from sqlalchemy.engine import Engine

from clinic.core import config

logger = logging.getLogger("sql.alerts")

MASKED_PARAMS = ("transaction_ref", "email", "phone", "password", "token")
_STATEMENT_TARGET = re.compile(
    r"^\s*(SELECT\b.*?\bFROM|INSERT\s+INTO|UPDATE|DELETE\s+FROM)\s+\"?(\w+)",
    re.IGNORECASE | re.DOTALL,
)


def _truncate(value: Any, limit: int) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."


def mask_params(params: Any) -> Any:
    """Copy of bound parameters that is safe to write to the logs."""
    if isinstance(params, dict):
        return {
            key: "***"
            if any(marker in str(key).lower() for marker in MASKED_PARAMS)
            else mask_params(value)
            for key, value in params.items()
        }
    if isinstance(params, (list, tuple)):
        return [mask_params(item) for item in params]
    if isinstance(params, bytes):
        return "<binary>"
    return _truncate(params, 200)


def statement_target(statement: str) -> Optional[str]:
    """``"UPDATE invoices"``-style label for the statement, when recognizable."""
    match = _STATEMENT_TARGET.match(statement or "")
    if not match:
        return None
    verb = match.group(1).split()[0].upper()
    return f"{verb} {match.group(2)}"


def _request_context(db_info: Dict[str, Any]) -> Dict[str, Any]:
    context = {key: value for key, value in db_info.items() if value}
    if has_request_context():
        for key in ("request_id", "route"):
            value = getattr(g, key, None)
            if value:
                context[key] = value
    return context


def _bound_params(context, parameters, executemany: bool) -> Any:
    compiled = getattr(context, "compiled_parameters", None)
    if compiled:
        return compiled if executemany else compiled[0]
    return parameters


def register_query_timing(
    engine: Engine, db_info: Optional[Dict[str, Any]] = None
) -> None:
    """Attach slow query alert listeners to ``engine`` (once per engine)."""
    if getattr(engine, "_slow_query_alerts", False):
        return

    if db_info is None:
        db_info = {"db_host": engine.url.host, "db_name": engine.url.database}

    @event.listens_for(engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        context._query_started_at = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _check_duration(conn, cursor, statement, parameters, context, executemany):
        enabled, threshold_ms = config.get_slow_query_settings()
        started = getattr(context, "_query_started_at", None)
        if not enabled or started is None:
            return
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms < threshold_ms:
            return
        logger.warning(
            "Slow query detected",
            extra={
                "context": {
                    "alert_type": "slow_query",
                    "duration_ms": round(duration_ms, 2),
                    "threshold_ms": threshold_ms,
                    "target": statement_target(statement),
                    "statement": _truncate(statement or "", 500),
                    "params": mask_params(_bound_params(context, parameters, executemany)),
                    "context": _request_context(db_info),
                }
            },
        )

    engine._slow_query_alerts = True
