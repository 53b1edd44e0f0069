from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from clinic.core import config
from clinic.domain.interfaces import IUnitOfWork
from clinic.services.appointment_service import AppointmentService
from clinic.services.conflict_detector import ConflictDetector
from clinic.services.invoice_item_service import InvoiceItemService
from clinic.services.invoice_service import InvoiceService
from clinic.services.payment_service import PaymentService


@dataclass
class ClinicServices:
    """The application services wired to one unit of work and one clock."""

    appointments: AppointmentService
    invoices: InvoiceService
    items: InvoiceItemService
    payments: PaymentService


def build_services(
    uow: IUnitOfWork, clock: Optional[Callable[[], datetime]] = None
) -> ClinicServices:
    clock = clock or config.now_local
    invoices = InvoiceService(uow, clock=clock)
    return ClinicServices(
        appointments=AppointmentService(uow, ConflictDetector(), clock=clock),
        invoices=invoices,
        items=InvoiceItemService(uow, invoices),
        payments=PaymentService(uow, invoices, clock=clock),
    )
