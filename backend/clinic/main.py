import logging
import os
from datetime import datetime
from typing import Callable, Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy import text

# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

from clinic.controllers import SERVICES_EXTENSION  # noqa: E402
from clinic.controllers.appointment_controller import appointment_bp  # noqa: E402
from clinic.controllers.invoice_controller import (  # noqa: E402
    invoice_bp,
    invoice_item_bp,
)
from clinic.controllers.payment_controller import payment_bp  # noqa: E402
from clinic.core import config as app_config  # noqa: E402
from clinic.core.logging_config import setup_logging  # noqa: E402
from clinic.db.session import create_tables  # noqa: E402
from clinic.domain.interfaces import IUnitOfWork  # noqa: E402
from clinic.repositories.unit_of_work import SqlAlchemyUnitOfWork  # noqa: E402
from clinic.services.container import build_services  # noqa: E402

logger = logging.getLogger(__name__)


def test_database_connection(uow: IUnitOfWork) -> bool:
    """Run a trivial query through the unit of work's session factory."""
    if not isinstance(uow, SqlAlchemyUnitOfWork):
        return True
    try:
        with uow.session_factory() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "Database connection failed",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )
        return False


def create_app(
    config: Optional[dict] = None,
    uow: Optional[IUnitOfWork] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Extra Flask config values (``TESTING`` and the like)
        uow: Unit of work to wire the services to; defaults to the
            SQLAlchemy one bound to DATABASE_URL
        clock: Source of "now" in clinic-local time for date rules
    """
    app = Flask(__name__)
    app.config["JSON_SORT_KEYS"] = False
    if os.getenv("TESTING", "").lower().strip() in ("true", "1", "yes"):
        app.config["TESTING"] = True
    if config:
        app.config.update(config)

    setup_logging(app=app, **app_config.get_logging_options())
    app_config.log_timezone_config()

    if uow is None:
        uow = SqlAlchemyUnitOfWork()
        create_tables()
    app.extensions[SERVICES_EXTENSION] = build_services(uow, clock=clock)

    app.register_blueprint(appointment_bp)
    app.register_blueprint(invoice_bp)
    app.register_blueprint(invoice_item_bp)
    app.register_blueprint(payment_bp)

    @app.route("/health")
    def health_check():
        db_status = test_database_connection(uow)
        return jsonify(
            {
                "status": "healthy" if db_status else "unhealthy",
                "database": "connected" if db_status else "disconnected",
            }
        ), (200 if db_status else 503)

    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables for the configured DATABASE_URL."""
        create_tables()
        click.echo("Database tables created.")

    logger.info(
        "Application created",
        extra={
            "context": {
                "testing": bool(app.config.get("TESTING")),
                "blueprints": sorted(app.blueprints),
            }
        },
    )
    return app
