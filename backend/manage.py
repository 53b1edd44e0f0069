"""Management commands for the clinic scheduling and billing backend."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import click

from clinic.controllers import SERVICES_EXTENSION
from clinic.db.session import create_tables, drop_tables
from clinic.domain.entities import Doctor, Patient, Person
from clinic.main import create_app
from clinic.repositories.unit_of_work import SqlAlchemyUnitOfWork

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

# Create the Flask application once so commands can share configuration.
app = create_app()


@click.group()
def cli() -> None:
    """Entry point for management commands."""


@cli.command("init-db")
@click.option("--reset", is_flag=True, help="Drop all tables before creating them.")
def init_db(reset: bool) -> None:
    """Create the schema for the configured DATABASE_URL."""
    if reset:
        drop_tables()
        logging.info("Dropped existing tables.")
    create_tables()
    logging.info("Tables created.")


@cli.command("add-doctor")
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--specialization", default="General Practice", show_default=True)
@click.option("--email", default=None)
def add_doctor(
    first_name: str, last_name: str, specialization: str, email: Optional[str]
) -> None:
    """Register a doctor so appointments can be booked against them."""
    with SqlAlchemyUnitOfWork().begin() as store:
        doctor = store.people.add_doctor(
            Doctor(
                person=Person(first_name=first_name, last_name=last_name, email=email),
                specialization=specialization,
            )
        )
    logging.info("Created doctor %s (id=%s).", doctor.person.full_name, doctor.id)


@cli.command("add-patient")
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--email", default=None)
@click.option("--phone", default=None)
def add_patient(
    first_name: str, last_name: str, email: Optional[str], phone: Optional[str]
) -> None:
    with SqlAlchemyUnitOfWork().begin() as store:
        patient = store.people.add_patient(
            Patient(
                person=Person(
                    first_name=first_name, last_name=last_name, email=email, phone=phone
                )
            )
        )
    logging.info("Created patient %s (id=%s).", patient.person.full_name, patient.id)


@cli.command("daily-income")
@click.option(
    "--day",
    default=None,
    help="ISO date to report on. Defaults to today in the clinic timezone.",
)
def daily_income(day: Optional[str]) -> None:
    """Print payments received on one day, grouped by method."""
    try:
        report_day = date.fromisoformat(day) if day else None
    except ValueError:
        raise click.ClickException(f"Invalid --day value '{day}'.") from None

    services = app.extensions[SERVICES_EXTENSION]
    if report_day is None:
        from clinic.core.config import today_local

        report_day = today_local()

    result = services.payments.get_daily_income_report(report_day)
    if not result.is_success:
        raise click.ClickException(result.message)

    report = result.data
    for method, amount in report.by_method.items():
        click.echo(f"{method.value:<15} {amount:>12}")
    click.echo(f"{'total':<15} {report.total:>12}")


if __name__ == "__main__":
    cli()
