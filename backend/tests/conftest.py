"""
Central pytest configuration for the clinic engine tests.

This file provides common fixtures, test markers, and environment setup
for both unit and integration tests.
"""

import os
from datetime import datetime
from types import SimpleNamespace

import pytest

# Set early so import-time configuration sees the test values
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ["LOG_TO_FILE"] = "0"
os.environ["ALERT_SLOW_QUERY_ENABLED"] = "false"
os.environ.pop("WORKING_HOURS_START", None)
os.environ.pop("WORKING_HOURS_END", None)

from clinic.core.locks import KeyedLockRegistry  # noqa: E402
from clinic.db.session import build_engine, create_tables, make_sessionmaker  # noqa: E402
from clinic.domain.entities import Doctor, Patient, Person  # noqa: E402
from clinic.repositories.unit_of_work import SqlAlchemyUnitOfWork  # noqa: E402
from clinic.services.container import build_services  # noqa: E402

# Clinic "now" for every test: all scenario dates lie after it
FIXED_NOW = datetime(2025, 5, 1, 9, 0)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "services: mark test as service layer test")
    config.addinivalue_line("markers", "appointment: mark test as appointment-related")
    config.addinivalue_line("markers", "billing: mark test as invoice/payment-related")
    config.addinivalue_line("markers", "repositories: mark test as repository test")
    config.addinivalue_line("markers", "api: mark test as API endpoint test")
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent writers"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def clock():
    """Fixed clinic-local clock."""
    return lambda: FIXED_NOW


@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite engine so concurrent threads get real connections."""
    engine = build_engine(f"sqlite:///{tmp_path / 'clinic_test.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def uow(db_engine):
    return SqlAlchemyUnitOfWork(
        session_factory=make_sessionmaker(db_engine), locks=KeyedLockRegistry()
    )


@pytest.fixture
def services(uow, clock):
    return build_services(uow, clock=clock)


@pytest.fixture
def seeded(uow):
    """Two doctors and two patients."""
    with uow.begin() as store:
        doctor = store.people.add_doctor(
            Doctor(person=Person("Gregory", "House"), specialization="Diagnostics")
        )
        other_doctor = store.people.add_doctor(
            Doctor(person=Person("Lisa", "Cuddy"), specialization="Endocrinology")
        )
        patient = store.people.add_patient(
            Patient(person=Person("Ana", "Souza", email="ana@example.com"))
        )
        other_patient = store.people.add_patient(
            Patient(person=Person("Bruno", "Lima", phone="+55 11 5555-0000"))
        )
    return SimpleNamespace(
        doctor_id=doctor.id,
        other_doctor_id=other_doctor.id,
        patient_id=patient.id,
        other_patient_id=other_patient.id,
    )


@pytest.fixture
def app(uow, clock):
    from clinic.main import create_app

    flask_app = create_app(config={"TESTING": True}, uow=uow, clock=clock)
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()
