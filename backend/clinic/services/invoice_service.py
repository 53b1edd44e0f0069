"""
Invoice lifecycle: creation, amount edits, status transitions and the total
synchronization hook used by the line item ledger.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from clinic.core import config
from clinic.core.exceptions import ConstraintViolationError, InfrastructureError
from clinic.core.locks import appointment_invoice_lock, invoice_lock
from clinic.domain.entities import (
    Invoice,
    InvoiceStatus,
    derive_invoice_status,
    to_money,
)
from clinic.domain.interfaces import ClinicStore, IUnitOfWork
from clinic.domain.results import InvoiceResult, ServiceResult
from clinic.schemas.dtos import InvoiceAmounts, InvoiceCreateRequest

logger = logging.getLogger(__name__)


def transition_allowed(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    """Forward-only moves; any pre-Paid invoice may be cancelled."""
    if current.is_terminal:
        return False
    if target == InvoiceStatus.CANCELLED:
        return True
    return target > current


def check_amounts(amounts: InvoiceAmounts) -> Optional[InvoiceResult]:
    """Return the first amount rule the values break, or None."""
    if amounts.total_amount <= 0:
        return InvoiceResult.INVALID_AMOUNT
    if amounts.tax_amount < 0:
        return InvoiceResult.INVALID_TAX_AMOUNT
    if amounts.discount_amount < 0:
        return InvoiceResult.INVALID_DISCOUNT_AMOUNT
    if amounts.discount_amount > amounts.total_amount:
        return InvoiceResult.DISCOUNT_EXCEEDS_TOTAL
    return None


class InvoiceService:
    """Application service for invoice-related use-cases.

    Business Rules:
    - At most one invoice per appointment
    - Amounts are editable only while nothing has been paid
    - Status moves forward only; Paid and Cancelled are final
    - The invoice total follows its line items (see ``sync_total``)
    """

    def __init__(
        self, uow: IUnitOfWork, clock: Callable[[], datetime] = config.now_local
    ):
        self.uow = uow
        self.clock = clock

    @staticmethod
    def is_mutable(invoice: Invoice) -> bool:
        """True while the invoice is neither Paid nor Cancelled."""
        return invoice.is_mutable

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, request: InvoiceCreateRequest) -> ServiceResult[Invoice]:
        """Create an invoice for an appointment that has none yet."""
        errors = request.validate()
        if errors:
            return ServiceResult.failure(
                InvoiceResult.VALIDATION_ERROR, validation_errors=errors
            )
        rejected = check_amounts(request.amounts)
        if rejected:
            return ServiceResult.failure(rejected)

        now = self.clock()
        if request.due_date is not None and request.due_date < now.date():
            return ServiceResult.failure(InvoiceResult.INVALID_DUE_DATE)

        try:
            with self.uow.begin(appointment_invoice_lock(request.appointment_id)) as store:
                appointment = store.appointments.get_by_id(request.appointment_id)
                if appointment is None:
                    return ServiceResult.failure(InvoiceResult.APPOINTMENT_NOT_FOUND)
                if not store.people.patient_exists(request.patient_id):
                    return ServiceResult.failure(InvoiceResult.PATIENT_NOT_FOUND)
                if appointment.patient_id != request.patient_id:
                    return ServiceResult.failure(
                        InvoiceResult.VALIDATION_ERROR,
                        validation_errors=[
                            "patient_id does not match the appointment's patient"
                        ],
                    )
                if store.invoices.exists_for_appointment(request.appointment_id):
                    return ServiceResult.failure(
                        InvoiceResult.APPOINTMENT_ALREADY_HAS_INVOICE
                    )

                invoice = store.invoices.insert(
                    Invoice(
                        appointment_id=request.appointment_id,
                        patient_id=request.patient_id,
                        total_amount=request.amounts.total_amount,
                        tax_amount=request.amounts.tax_amount,
                        discount_amount=request.amounts.discount_amount,
                        status=request.status,
                        invoice_date=now,
                        due_date=request.due_date,
                        notes=request.notes,
                    )
                )
        except ConstraintViolationError:
            # The unique appointment_id constraint caught a concurrent writer
            logger.warning(
                "Invoice insert rejected by constraint",
                extra={"context": {"appointment_id": request.appointment_id}},
            )
            return self._constraint_failure(request.appointment_id)
        except InfrastructureError:
            logger.error(
                "Invoice creation failed",
                exc_info=True,
                extra={"context": {"appointment_id": request.appointment_id}},
            )
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)

        logger.info(
            "Invoice created",
            extra={
                "context": {
                    "invoice_id": invoice.id,
                    "invoice_number": invoice.invoice_number,
                    "appointment_id": invoice.appointment_id,
                    "net_amount": invoice.net_amount,
                }
            },
        )
        return ServiceResult.success(InvoiceResult.CREATED_SUCCESSFULLY, invoice)

    def _constraint_failure(self, appointment_id: int) -> ServiceResult[Invoice]:
        try:
            with self.uow.begin() as store:
                exists = store.invoices.exists_for_appointment(appointment_id)
        except InfrastructureError:
            exists = False
        if exists:
            return ServiceResult.failure(InvoiceResult.APPOINTMENT_ALREADY_HAS_INVOICE)
        return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)

    def update_amounts(
        self, invoice_id: int, amounts: InvoiceAmounts
    ) -> ServiceResult[Invoice]:
        """Edit total, tax and discount of an invoice with no payments yet."""
        rejected = check_amounts(amounts)
        if rejected:
            return ServiceResult.failure(rejected)

        try:
            with self.uow.begin(invoice_lock(invoice_id)) as store:
                invoice = store.invoices.get_for_update(invoice_id)
                if invoice is None:
                    return ServiceResult.failure(InvoiceResult.NOT_FOUND)
                if invoice.status == InvoiceStatus.CANCELLED:
                    return ServiceResult.failure(InvoiceResult.INVOICE_CANCELLED)
                if invoice.status >= InvoiceStatus.PARTIALLY_PAID:
                    return ServiceResult.failure(InvoiceResult.INVOICE_ALREADY_PAID)

                store.invoices.update_amounts(
                    invoice_id,
                    amounts.total_amount,
                    amounts.tax_amount,
                    amounts.discount_amount,
                )
                updated = store.invoices.get_by_id(invoice_id)
        except InfrastructureError:
            logger.error(
                "Invoice amount update failed",
                exc_info=True,
                extra={"context": {"invoice_id": invoice_id}},
            )
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)

        logger.info(
            "Invoice amounts updated",
            extra={
                "context": {
                    "invoice_id": invoice_id,
                    "total_amount": amounts.total_amount,
                    "tax_amount": amounts.tax_amount,
                    "discount_amount": amounts.discount_amount,
                }
            },
        )
        return ServiceResult.success(InvoiceResult.UPDATED_SUCCESSFULLY, updated)

    def transition_status(
        self, invoice_id: int, new_status: InvoiceStatus
    ) -> ServiceResult[Invoice]:
        """Move an invoice forward in its lifecycle, or cancel it."""
        new_status = InvoiceStatus(new_status)
        try:
            with self.uow.begin(invoice_lock(invoice_id)) as store:
                invoice = store.invoices.get_for_update(invoice_id)
                if invoice is None:
                    return ServiceResult.failure(InvoiceResult.NOT_FOUND)
                if invoice.status == new_status:
                    return ServiceResult.success(InvoiceResult.SUCCESS, invoice)
                if not transition_allowed(invoice.status, new_status):
                    logger.info(
                        "Illegal invoice status transition",
                        extra={
                            "context": {
                                "invoice_id": invoice_id,
                                "from": invoice.status.name,
                                "to": new_status.name,
                            }
                        },
                    )
                    return ServiceResult.failure(
                        InvoiceResult.INVALID_STATUS_TRANSITION
                    )
                store.invoices.update_status(invoice_id, new_status)
                updated = store.invoices.get_by_id(invoice_id)
        except InfrastructureError:
            logger.error(
                "Invoice status update failed",
                exc_info=True,
                extra={"context": {"invoice_id": invoice_id}},
            )
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)

        logger.info(
            "Invoice status changed",
            extra={"context": {"invoice_id": invoice_id, "status": new_status.name}},
        )
        return ServiceResult.success(InvoiceResult.STATUS_CHANGED_SUCCESSFULLY, updated)

    # ------------------------------------------------------------------
    # Hooks used inside other services' transactions
    # ------------------------------------------------------------------

    def sync_total(
        self, store: ClinicStore, invoice: Invoice, new_subtotal: Decimal
    ) -> Invoice:
        """Write the ledger subtotal as the invoice total.

        Skips the amount-edit lock: the ledger has already checked that the
        invoice is mutable. When payments exist the status is re-derived so a
        shrinking total can settle a partially paid invoice.
        """
        new_subtotal = to_money(new_subtotal)
        store.invoices.update_total(invoice.id, new_subtotal)
        invoice.total_amount = new_subtotal

        paid = store.payments.sum_payments(invoice.id)
        if paid > 0:
            self.apply_paid_amount(store, invoice, paid)
        return invoice

    def apply_paid_amount(
        self, store: ClinicStore, invoice: Invoice, total_paid: Decimal
    ) -> InvoiceStatus:
        """Set the status implied by ``total_paid`` against the invoice total."""
        status = derive_invoice_status(invoice.total_amount, total_paid)
        if status != invoice.status:
            store.invoices.update_status(invoice.id, status)
            logger.info(
                "Invoice status derived from payments",
                extra={
                    "context": {
                        "invoice_id": invoice.id,
                        "from": invoice.status.name,
                        "to": status.name,
                        "total_paid": total_paid,
                        "total_amount": invoice.total_amount,
                    }
                },
            )
            invoice.status = status
        return status

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_invoice(self, invoice_id: int) -> ServiceResult[Invoice]:
        try:
            with self.uow.begin() as store:
                invoice = store.invoices.get_by_id(invoice_id)
        except InfrastructureError:
            logger.error("Invoice lookup failed", exc_info=True)
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)
        if invoice is None:
            return ServiceResult.failure(InvoiceResult.NOT_FOUND)
        return ServiceResult.success(InvoiceResult.SUCCESS, invoice)

    def get_patient_invoices(self, patient_id: int) -> ServiceResult[List[Invoice]]:
        try:
            with self.uow.begin() as store:
                if not store.people.patient_exists(patient_id):
                    return ServiceResult.failure(InvoiceResult.PATIENT_NOT_FOUND)
                invoices = store.invoices.get_by_patient(patient_id)
        except InfrastructureError:
            logger.error("Patient invoice listing failed", exc_info=True)
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)
        return self._listing(invoices)

    def get_invoices_by_date_range(
        self, start: datetime, end: datetime
    ) -> ServiceResult[List[Invoice]]:
        if start > end:
            return ServiceResult.failure(
                InvoiceResult.VALIDATION_ERROR,
                validation_errors=["start must not be after end"],
            )
        try:
            with self.uow.begin() as store:
                invoices = store.invoices.get_by_date_range(start, end)
        except InfrastructureError:
            logger.error("Invoice listing failed", exc_info=True)
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)
        return self._listing(invoices)

    def get_patient_outstanding_balance(
        self, patient_id: int
    ) -> ServiceResult[Decimal]:
        """Net amount still owed over the patient's open invoices."""
        try:
            with self.uow.begin() as store:
                if not store.people.patient_exists(patient_id):
                    return ServiceResult.failure(InvoiceResult.PATIENT_NOT_FOUND)
                balance = store.invoices.outstanding_balance(patient_id)
        except InfrastructureError:
            logger.error("Outstanding balance lookup failed", exc_info=True)
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)
        return ServiceResult.success(InvoiceResult.SUCCESS, balance)

    def get_total_revenue(
        self, start: datetime, end: datetime
    ) -> ServiceResult[Decimal]:
        """Total of Paid invoices dated within ``[start, end]``."""
        if start > end:
            return ServiceResult.failure(
                InvoiceResult.VALIDATION_ERROR,
                validation_errors=["start must not be after end"],
            )
        try:
            with self.uow.begin() as store:
                revenue = store.invoices.total_revenue(start, end)
        except InfrastructureError:
            logger.error("Revenue lookup failed", exc_info=True)
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)
        return ServiceResult.success(InvoiceResult.SUCCESS, revenue)

    def invoice_exists_for_appointment(
        self, appointment_id: int
    ) -> ServiceResult[bool]:
        try:
            with self.uow.begin() as store:
                exists = store.invoices.exists_for_appointment(appointment_id)
        except InfrastructureError:
            logger.error("Invoice existence check failed", exc_info=True)
            return ServiceResult.failure(InvoiceResult.DATABASE_ERROR)
        return ServiceResult.success(InvoiceResult.SUCCESS, exists)

    @staticmethod
    def _listing(invoices: List[Invoice]) -> ServiceResult[List[Invoice]]:
        if not invoices:
            return ServiceResult.success(InvoiceResult.NO_DATA, [])
        return ServiceResult.success(InvoiceResult.SUCCESS, invoices)
