"""
Repository test factories following Interface Segregation Principle.

This module provides mock factories for the store interfaces and a stub
unit of work that hands the same mocked ``ClinicStore`` to every service
call, so unit tests exercise service rules without a database.
"""

from contextlib import contextmanager
from typing import List, Optional
from unittest.mock import Mock

from clinic.domain.entities import ZERO
from clinic.domain.interfaces import (
    ClinicStore,
    IAppointmentReader,
    IAppointmentRepository,
    IInvoiceItemRepository,
    IInvoiceRepository,
    IPaymentRepository,
    IPeopleRepository,
    IUnitOfWork,
)


class AppointmentRepositoryFactory:
    """Factory for creating Appointment repository mocks."""

    @staticmethod
    def create_mock_reader(existing: Optional[List] = None) -> Mock:
        """Create mock that only implements IAppointmentReader operations."""
        mock_reader = Mock(spec=IAppointmentReader)
        mock_reader.get_by_id.return_value = None
        mock_reader.find_overlapping.return_value = list(existing or [])
        mock_reader.get_by_doctor_and_range.return_value = []
        mock_reader.get_by_date_range.return_value = []
        return mock_reader

    @staticmethod
    def create_mock_full() -> Mock:
        """Create full repository mock implementing IAppointmentRepository."""
        mock_repo = Mock(spec=IAppointmentRepository)

        # Read operations
        mock_repo.get_by_id.return_value = None
        mock_repo.find_overlapping.return_value = []
        mock_repo.get_by_doctor_and_range.return_value = []
        mock_repo.get_by_date_range.return_value = []

        # Write operations
        mock_repo.insert.return_value = None
        mock_repo.update_status.return_value = True
        mock_repo.update_slot.return_value = True
        return mock_repo


class InvoiceRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = Mock(spec=IInvoiceRepository)
        mock_repo.get_by_id.return_value = None
        mock_repo.get_for_update.return_value = None
        mock_repo.exists_for_appointment.return_value = False
        mock_repo.get_by_patient.return_value = []
        mock_repo.get_by_date_range.return_value = []
        mock_repo.outstanding_balance.return_value = ZERO
        mock_repo.total_revenue.return_value = ZERO
        mock_repo.insert.return_value = None
        mock_repo.update_amounts.return_value = True
        mock_repo.update_total.return_value = True
        mock_repo.update_status.return_value = True
        return mock_repo


class InvoiceItemRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = Mock(spec=IInvoiceItemRepository)
        mock_repo.list_items.return_value = []
        mock_repo.get_by_id.return_value = None
        mock_repo.subtotal.return_value = ZERO
        mock_repo.insert.return_value = None
        mock_repo.update.return_value = True
        mock_repo.delete.return_value = True
        return mock_repo


class PaymentRepositoryFactory:
    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = Mock(spec=IPaymentRepository)
        mock_repo.sum_payments.return_value = ZERO
        mock_repo.list_by_invoice.return_value = []
        mock_repo.get_by_id.return_value = None
        mock_repo.daily_income_by_method.return_value = {}
        mock_repo.insert.return_value = None
        return mock_repo


class PeopleRepositoryFactory:
    @staticmethod
    def create_mock_full(patients_exist: bool = True, doctors_exist: bool = True) -> Mock:
        mock_repo = Mock(spec=IPeopleRepository)
        mock_repo.patient_exists.return_value = patients_exist
        mock_repo.doctor_exists.return_value = doctors_exist
        mock_repo.get_patient.return_value = None
        mock_repo.get_doctor.return_value = None
        return mock_repo


def create_mock_store() -> ClinicStore:
    return ClinicStore(
        appointments=AppointmentRepositoryFactory.create_mock_full(),
        invoices=InvoiceRepositoryFactory.create_mock_full(),
        items=InvoiceItemRepositoryFactory.create_mock_full(),
        payments=PaymentRepositoryFactory.create_mock_full(),
        people=PeopleRepositoryFactory.create_mock_full(),
    )


class StubUnitOfWork(IUnitOfWork):
    """Yields one shared mocked store and records the lock keys requested.

    Set ``error`` to an exception instance to make the next ``begin`` raise it.
    """

    def __init__(self, store: Optional[ClinicStore] = None) -> None:
        self.store = store or create_mock_store()
        self.lock_calls: List[tuple] = []
        self.error: Optional[Exception] = None

    @contextmanager
    def begin(self, *lock_keys: str):
        self.lock_calls.append(lock_keys)
        if self.error is not None:
            raise self.error
        yield self.store
