"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define contracts without implementation details,
enabling dependency injection and easier testing. Every repository call runs
inside the transaction opened by ``IUnitOfWork.begin``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import ContextManager, List, Optional

from .entities import (
    Appointment,
    AppointmentStatus,
    Doctor,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Patient,
    Payment,
    PaymentMethod,
    TimeSlot,
)


class IAppointmentReader(ABC):
    """Interface for appointment read operations."""

    @abstractmethod
    def get_by_id(self, appointment_id: int) -> Optional[Appointment]:
        """Get appointment by ID."""
        pass

    @abstractmethod
    def find_overlapping(
        self,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Appointment]:
        """Non-canceled appointments of ``doctor_id`` intersecting ``[start, end)``."""
        pass

    @abstractmethod
    def get_by_doctor_and_range(
        self, doctor_id: int, start: datetime, end: datetime
    ) -> List[Appointment]:
        """Get a doctor's appointments starting inside ``[start, end)``."""
        pass

    @abstractmethod
    def get_by_date_range(self, start: datetime, end: datetime) -> List[Appointment]:
        """Get appointments starting inside ``[start, end)``."""
        pass


class IAppointmentWriter(ABC):
    """Interface for appointment write operations."""

    @abstractmethod
    def insert(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment and return it with its id."""
        pass

    @abstractmethod
    def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
        updated_by: Optional[str],
        updated_at: datetime,
    ) -> bool:
        """Set the appointment status. False if the id is unknown."""
        pass

    @abstractmethod
    def update_slot(
        self,
        appointment_id: int,
        slot: TimeSlot,
        updated_by: Optional[str],
        updated_at: datetime,
    ) -> bool:
        """Move the appointment to another slot. False if the id is unknown."""
        pass


class IAppointmentRepository(IAppointmentReader, IAppointmentWriter):
    """Complete appointment repository interface."""

    pass


class IInvoiceReader(ABC):
    """Interface for invoice read operations."""

    @abstractmethod
    def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID, including its line items."""
        pass

    @abstractmethod
    def get_for_update(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID, locking the row until the transaction ends."""
        pass

    @abstractmethod
    def exists_for_appointment(self, appointment_id: int) -> bool:
        pass

    @abstractmethod
    def get_by_patient(self, patient_id: int) -> List[Invoice]:
        pass

    @abstractmethod
    def get_by_date_range(self, start: datetime, end: datetime) -> List[Invoice]:
        """Invoices whose invoice date lies inside ``[start, end]``."""
        pass

    @abstractmethod
    def outstanding_balance(self, patient_id: int) -> Decimal:
        """Sum of net amounts of the patient's invoices not Paid or Cancelled."""
        pass

    @abstractmethod
    def total_revenue(self, start: datetime, end: datetime) -> Decimal:
        """Sum of total amounts of Paid invoices dated inside ``[start, end]``."""
        pass


class IInvoiceWriter(ABC):
    """Interface for invoice write operations."""

    @abstractmethod
    def insert(self, invoice: Invoice) -> Invoice:
        """Persist a new invoice, assigning its id and invoice number."""
        pass

    @abstractmethod
    def update_amounts(
        self, invoice_id: int, total: Decimal, tax: Decimal, discount: Decimal
    ) -> bool:
        pass

    @abstractmethod
    def update_total(self, invoice_id: int, total: Decimal) -> bool:
        pass

    @abstractmethod
    def update_status(self, invoice_id: int, status: InvoiceStatus) -> bool:
        pass


class IInvoiceRepository(IInvoiceReader, IInvoiceWriter):
    """Complete invoice repository interface."""

    pass


class IInvoiceItemReader(ABC):
    """Interface for invoice line item read operations."""

    @abstractmethod
    def list_items(self, invoice_id: int) -> List[InvoiceLineItem]:
        pass

    @abstractmethod
    def get_by_id(self, item_id: int) -> Optional[InvoiceLineItem]:
        pass

    @abstractmethod
    def subtotal(self, invoice_id: int) -> Decimal:
        """Sum of ``unit_price * quantity`` over the invoice's current items."""
        pass


class IInvoiceItemWriter(ABC):
    """Interface for invoice line item write operations."""

    @abstractmethod
    def insert(self, item: InvoiceLineItem) -> InvoiceLineItem:
        pass

    @abstractmethod
    def update(self, item: InvoiceLineItem) -> bool:
        pass

    @abstractmethod
    def delete(self, item_id: int) -> bool:
        pass


class IInvoiceItemRepository(IInvoiceItemReader, IInvoiceItemWriter):
    """Complete invoice item repository interface."""

    pass


class IPaymentReader(ABC):
    """Interface for payment read operations."""

    @abstractmethod
    def sum_payments(self, invoice_id: int) -> Decimal:
        pass

    @abstractmethod
    def list_by_invoice(self, invoice_id: int) -> List[Payment]:
        pass

    @abstractmethod
    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        pass

    @abstractmethod
    def daily_income_by_method(self, day: date) -> dict[PaymentMethod, Decimal]:
        pass


class IPaymentWriter(ABC):
    """Payments are append-only: there is no update or delete."""

    @abstractmethod
    def insert(self, payment: Payment) -> Payment:
        pass


class IPaymentRepository(IPaymentReader, IPaymentWriter):
    """Complete payment repository interface."""

    pass


class IPeopleReader(ABC):
    """Narrow read access to patient and doctor records."""

    @abstractmethod
    def get_patient(self, patient_id: int) -> Optional[Patient]:
        pass

    @abstractmethod
    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        pass

    def patient_exists(self, patient_id: int) -> bool:
        return self.get_patient(patient_id) is not None

    def doctor_exists(self, doctor_id: int) -> bool:
        return self.get_doctor(doctor_id) is not None


class IPeopleWriter(ABC):
    """Registration of patients and doctors (used by seeding and tests)."""

    @abstractmethod
    def add_patient(self, patient: Patient) -> Patient:
        pass

    @abstractmethod
    def add_doctor(self, doctor: Doctor) -> Doctor:
        pass


class IPeopleRepository(IPeopleReader, IPeopleWriter):
    """Complete people repository interface."""

    pass


@dataclass
class ClinicStore:
    """Repositories bound to one open transaction."""

    appointments: IAppointmentRepository
    invoices: IInvoiceRepository
    items: IInvoiceItemRepository
    payments: IPaymentRepository
    people: IPeopleRepository


class IUnitOfWork(ABC):
    """Transaction boundary for a single service operation."""

    @abstractmethod
    def begin(self, *lock_keys: str) -> ContextManager[ClinicStore]:
        """Open a transaction holding ``lock_keys`` and yield its store.

        Commits when the block exits normally and rolls back on any
        exception. Storage failures surface as ``InfrastructureError``.
        """
        pass
