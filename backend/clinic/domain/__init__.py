"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities and value types (TimeSlot, Appointment, Invoice)
- interfaces.py: Repository and unit of work contracts
- results.py: Typed outcomes returned by the services
"""

from .entities import (
    Appointment,
    AppointmentStatus,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    TimeSlot,
)
from .interfaces import (
    ClinicStore,
    IAppointmentRepository,
    IInvoiceItemRepository,
    IInvoiceRepository,
    IPaymentRepository,
    IPeopleRepository,
    IUnitOfWork,
)
from .results import ErrorCategory, ServiceResult

__all__ = [
    # Domain entities
    "TimeSlot",
    "Appointment",
    "AppointmentStatus",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    # Repository interfaces
    "IAppointmentRepository",
    "IInvoiceRepository",
    "IInvoiceItemRepository",
    "IPaymentRepository",
    "IPeopleRepository",
    "ClinicStore",
    "IUnitOfWork",
    # Outcomes
    "ServiceResult",
    "ErrorCategory",
]
