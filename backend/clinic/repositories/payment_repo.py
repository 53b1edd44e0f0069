"""
Payment repository. Payments are append-only: there is no update or delete.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic.db.base import Payment as DbPayment
from clinic.domain.entities import Payment as DomainPayment
from clinic.domain.entities import PaymentMethod, to_money
from clinic.domain.interfaces import IPaymentRepository
from clinic.repositories.errors import flush_or_raise


class PaymentRepository(IPaymentRepository):
    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def sum_payments(self, invoice_id: int) -> Decimal:
        stmt = select(func.coalesce(func.sum(DbPayment.amount), 0)).where(
            DbPayment.invoice_id == invoice_id
        )
        return to_money(self.db.scalar(stmt) or 0)

    def list_by_invoice(self, invoice_id: int) -> List[DomainPayment]:
        stmt = (
            select(DbPayment)
            .where(DbPayment.invoice_id == invoice_id)
            .order_by(DbPayment.paid_at, DbPayment.id)
        )
        return [self._to_domain(row) for row in self.db.scalars(stmt).all()]

    def get_by_id(self, payment_id: int) -> Optional[DomainPayment]:
        db_payment = self.db.get(DbPayment, payment_id)
        return self._to_domain(db_payment) if db_payment else None

    def daily_income_by_method(self, day: date) -> dict[PaymentMethod, Decimal]:
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        stmt = (
            select(DbPayment.method, func.sum(DbPayment.amount))
            .where(DbPayment.paid_at >= start, DbPayment.paid_at < end)
            .group_by(DbPayment.method)
        )
        return {
            PaymentMethod(method): to_money(total or 0)
            for method, total in self.db.execute(stmt).all()
        }

    def insert(self, payment: DomainPayment) -> DomainPayment:
        db_payment = DbPayment(
            invoice_id=payment.invoice_id,
            amount=payment.amount,
            method=payment.method.value,
            transaction_ref=payment.transaction_ref,
            paid_at=payment.paid_at,
            notes=payment.notes,
        )
        self.db.add(db_payment)
        flush_or_raise(self.db, "insert_payment")
        return self._to_domain(db_payment)

    def _to_domain(self, db_payment: DbPayment) -> DomainPayment:
        return DomainPayment(
            id=db_payment.id,
            invoice_id=db_payment.invoice_id,
            amount=db_payment.amount,
            method=PaymentMethod(db_payment.method),
            transaction_ref=db_payment.transaction_ref,
            paid_at=db_payment.paid_at,
            notes=db_payment.notes,
        )
