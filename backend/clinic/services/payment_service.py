"""
Payment application against invoices.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List

from clinic.core import config
from clinic.core.exceptions import InfrastructureError
from clinic.core.locks import invoice_lock
from clinic.domain.entities import (
    ZERO,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    to_money,
)
from clinic.domain.interfaces import IUnitOfWork
from clinic.domain.results import PaymentResult, ServiceResult
from clinic.schemas.dtos import PaymentCreateRequest
from clinic.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


@dataclass
class PaymentReceipt:
    payment: Payment
    invoice_status: InvoiceStatus
    total_paid: Decimal
    remaining_balance: Decimal


@dataclass
class DailyIncomeReport:
    day: date
    by_method: Dict[PaymentMethod, Decimal] = field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return to_money(sum(self.by_method.values(), ZERO))


def transaction_ref_ok(method: PaymentMethod, ref: str | None) -> bool:
    if not method.requires_reference:
        return True
    if not ref or not ref.strip():
        return False
    return (
        config.TRANSACTION_REF_MIN_LENGTH
        <= len(ref.strip())
        <= config.TRANSACTION_REF_MAX_LENGTH
    )


class PaymentService:
    """Application service recording payments and settling invoices.

    The remaining balance check, the insert and the status recomputation run
    in one transaction under the invoice lock, so two concurrent payments can
    never together exceed the invoice total.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        invoice_service: InvoiceService,
        clock: Callable[[], datetime] = config.now_local,
    ):
        self.uow = uow
        self.invoice_service = invoice_service
        self.clock = clock

    def apply(self, request: PaymentCreateRequest) -> ServiceResult[PaymentReceipt]:
        """Record a payment and move the invoice to PartiallyPaid or Paid."""
        invoice_id = request.invoice_id
        amount = None if request.amount is None else to_money(request.amount)
        try:
            with self.uow.begin(invoice_lock(invoice_id)) as store:
                invoice = store.invoices.get_for_update(invoice_id)
                if invoice is None:
                    return ServiceResult.failure(PaymentResult.INVOICE_NOT_FOUND)
                if invoice.status == InvoiceStatus.CANCELLED:
                    return ServiceResult.failure(PaymentResult.INVOICE_CANCELLED)
                if invoice.status == InvoiceStatus.PAID:
                    return ServiceResult.failure(PaymentResult.INVOICE_ALREADY_PAID)
                if amount is None or amount <= 0:
                    return ServiceResult.failure(PaymentResult.INVALID_PAYMENT_AMOUNT)

                remaining = invoice.total_amount - store.payments.sum_payments(
                    invoice_id
                )
                if amount > remaining:
                    logger.info(
                        "Payment rejected: amount exceeds remaining balance",
                        extra={
                            "context": {
                                "invoice_id": invoice_id,
                                "amount": amount,
                                "remaining_balance": remaining,
                            }
                        },
                    )
                    return ServiceResult.failure(
                        PaymentResult.AMOUNT_EXCEEDS_REMAINING_BALANCE
                    )
                if not transaction_ref_ok(request.method, request.transaction_ref):
                    return ServiceResult.failure(
                        PaymentResult.TRANSACTION_REF_REQUIRED
                    )

                payment = store.payments.insert(
                    Payment(
                        invoice_id=invoice_id,
                        amount=amount,
                        method=request.method,
                        transaction_ref=request.transaction_ref,
                        paid_at=self.clock(),
                        notes=request.notes,
                    )
                )
                # Re-read after the insert has been flushed
                total_paid = store.payments.sum_payments(invoice_id)
                status = self.invoice_service.apply_paid_amount(
                    store, invoice, total_paid
                )
        except InfrastructureError:
            logger.error(
                "Payment failed",
                exc_info=True,
                extra={"context": {"invoice_id": invoice_id}},
            )
            return ServiceResult.failure(PaymentResult.OPERATION_FAILED)

        receipt = PaymentReceipt(
            payment=payment,
            invoice_status=status,
            total_paid=total_paid,
            remaining_balance=to_money(invoice.total_amount - total_paid),
        )
        logger.info(
            "Payment applied",
            extra={
                "context": {
                    "invoice_id": invoice_id,
                    "payment_id": payment.id,
                    "amount": payment.amount,
                    "method": payment.method.value,
                    "invoice_status": status.name,
                    "remaining_balance": receipt.remaining_balance,
                }
            },
        )
        return ServiceResult.success(PaymentResult.SUCCESS, receipt)

    def get_invoice_payments(self, invoice_id: int) -> ServiceResult[List[Payment]]:
        try:
            with self.uow.begin() as store:
                if store.invoices.get_by_id(invoice_id) is None:
                    return ServiceResult.failure(PaymentResult.INVOICE_NOT_FOUND)
                payments = store.payments.list_by_invoice(invoice_id)
        except InfrastructureError:
            logger.error("Payment listing failed", exc_info=True)
            return ServiceResult.failure(PaymentResult.OPERATION_FAILED)
        if not payments:
            return ServiceResult.success(PaymentResult.NO_DATA, [])
        return ServiceResult.success(PaymentResult.SUCCESS, payments)

    def get_payment(self, payment_id: int) -> ServiceResult[Payment]:
        try:
            with self.uow.begin() as store:
                payment = store.payments.get_by_id(payment_id)
        except InfrastructureError:
            logger.error("Payment lookup failed", exc_info=True)
            return ServiceResult.failure(PaymentResult.OPERATION_FAILED)
        if payment is None:
            return ServiceResult.failure(PaymentResult.PAYMENT_NOT_FOUND)
        return ServiceResult.success(PaymentResult.SUCCESS, payment)

    def get_remaining_balance(self, invoice_id: int) -> ServiceResult[Decimal]:
        """Invoice total minus everything paid so far."""
        try:
            with self.uow.begin() as store:
                invoice = store.invoices.get_by_id(invoice_id)
                if invoice is None:
                    return ServiceResult.failure(PaymentResult.INVOICE_NOT_FOUND)
                paid = store.payments.sum_payments(invoice_id)
        except InfrastructureError:
            logger.error("Remaining balance lookup failed", exc_info=True)
            return ServiceResult.failure(PaymentResult.OPERATION_FAILED)
        return ServiceResult.success(
            PaymentResult.SUCCESS, to_money(invoice.total_amount - paid)
        )

    def get_daily_income_report(self, day: date) -> ServiceResult[DailyIncomeReport]:
        """Income received on ``day``, broken down by payment method."""
        try:
            with self.uow.begin() as store:
                by_method = store.payments.daily_income_by_method(day)
        except InfrastructureError:
            logger.error("Daily income report failed", exc_info=True)
            return ServiceResult.failure(PaymentResult.OPERATION_FAILED)
        report = DailyIncomeReport(day=day, by_method=by_method)
        if not by_method:
            return ServiceResult.success(PaymentResult.NO_DATA, report)
        return ServiceResult.success(PaymentResult.SUCCESS, report)
