"""
Centralized logging configuration for the clinic consistency engine.

Console output is colored text in development and JSON when ``LOG_JSON`` is
set; files under ``backend/logs`` are always JSON. Modules log through the
stdlib and attach structured fields under ``extra={"context": {...}}``:

    logger = logging.getLogger(__name__)
    logger.info("Payment applied", extra={"context": {"invoice_id": 12}})
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from flask import Flask, g, request
from sqlalchemy import event
from sqlalchemy.engine import Engine

DEFAULT_LOG_DIR = Path(__file__).parent.parent.parent / "logs"
LOG_FILES = (("app.log", None), ("clinic_errors.log", logging.ERROR))
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_sql_timing_registered = False


def _json_default(value: Any) -> Any:
    # Money, clinic timestamps and status enums show up in log context
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.name.lower()
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the record's ``context`` if present."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=_json_default)


class ConsoleFormatter(logging.Formatter):
    """Colored level names for a developer terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy so file handlers sharing the record keep the plain level
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        colored.levelname = f"{color}{record.levelname:8}{self.RESET}"
        line = super().format(colored)
        context = getattr(record, "context", None)
        if context:
            line += " " + json.dumps(context, default=_json_default)
        return line


def _resolve_level(log_level: Union[int, str]) -> int:
    if isinstance(log_level, int):
        return log_level
    return getattr(logging, str(log_level).upper(), logging.INFO)


def _file_handlers(log_dir: Path, level: int) -> tuple[List[logging.Handler], List[str]]:
    """Rotating JSON handlers, plus warnings for any that could not be opened."""
    try:
        log_dir.mkdir(exist_ok=True)
    except OSError as e:
        return [], [f"Cannot create log directory {log_dir}: {e}. Console only."]

    handlers: List[logging.Handler] = []
    warnings: List[str] = []
    for filename, handler_level in LOG_FILES:
        try:
            handler = logging.handlers.RotatingFileHandler(
                log_dir / filename,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            warnings.append(f"Cannot open {filename}: {e}. Skipping this log file.")
            continue
        handler.setLevel(handler_level or level)
        handler.setFormatter(JSONFormatter())
        handlers.append(handler)
    return handlers, warnings


def _register_sql_timing() -> None:
    """Log every statement's duration on ``sqlalchemy.performance``."""
    global _sql_timing_registered
    if _sql_timing_registered:
        return

    @event.listens_for(Engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(Engine, "after_cursor_execute")
    def _log_duration(conn, cursor, statement, parameters, context, executemany):
        started = conn.info.get("query_start_time")
        if not started:
            return
        duration_ms = round((time.perf_counter() - started.pop()) * 1000, 2)
        logging.getLogger("sqlalchemy.performance").info(
            "Query executed in %.2fms",
            duration_ms,
            extra={"context": {"sql": statement[:500], "duration_ms": duration_ms}},
        )

    _sql_timing_registered = True


def _register_request_hooks(app: Flask) -> None:
    """Tag each request with an id and route, log it on the way in and out."""
    request_logger = logging.getLogger("clinic.http")

    @app.before_request
    def _log_request():
        g.request_start_time = time.perf_counter()
        g.request_id = f"{time.time():.6f}-{id(request)}"
        g.route = request.endpoint or request.path
        request_logger.info(
            "%s %s",
            request.method,
            request.path,
            extra={
                "context": {
                    "request_id": g.request_id,
                    "route": g.route,
                    "remote_addr": request.remote_addr,
                }
            },
        )

    @app.after_request
    def _log_response(response):
        started = g.get("request_start_time")
        if started is None:
            return response
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        # Client errors are business outcomes (busy doctor, overpayment)
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        request_logger.log(
            level,
            "%s %s -> %s in %.2fms",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            extra={
                "context": {
                    "request_id": g.get("request_id"),
                    "route": g.get("route"),
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                }
            },
        )
        return response


def setup_logging(
    app: Optional[Flask] = None,
    log_level: Union[int, str] = "INFO",
    enable_sql_echo: bool = False,
    log_to_file: bool = True,
    use_json_format: bool = False,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure the root logger for the clinic application.

    Args:
        app: Flask application to attach request/response logging to
        log_level: Level name ("INFO") or number (logging.INFO)
        enable_sql_echo: Log SQL statements and their timings
        log_to_file: Add rotating JSON files under ``log_dir``
        use_json_format: JSON instead of colored text on the console
        log_dir: Directory for log files (defaults to backend/logs)
    """
    level = _resolve_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        JSONFormatter() if use_json_format else ConsoleFormatter()
    )
    root_logger.addHandler(console_handler)

    if log_to_file:
        handlers, warnings = _file_handlers(log_dir or DEFAULT_LOG_DIR, level)
        for handler in handlers:
            root_logger.addHandler(handler)
        for message in warnings:
            root_logger.warning(message, extra={"context": {"component": "logging"}})

    if enable_sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
        _register_sql_timing()

    if app is not None:
        _register_request_hooks(app)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("clinic").info(
        "Logging configured",
        extra={
            "context": {
                "level": logging.getLevelName(level),
                "sql_echo": enable_sql_echo,
                "log_to_file": log_to_file,
                "json_format": use_json_format,
            }
        },
    )
