"""
Invoice repository implementation.

Amounts are stored as ``Numeric(10, 2)`` and always handed back to the domain
quantized to cents.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from clinic.db.base import Invoice as DbInvoice
from clinic.db.base import InvoiceItem as DbInvoiceItem
from clinic.domain.entities import Invoice as DomainInvoice
from clinic.domain.entities import InvoiceLineItem, InvoiceStatus, to_money
from clinic.domain.interfaces import IInvoiceRepository
from clinic.repositories.errors import flush_or_raise


def format_invoice_number(invoice_date: datetime, invoice_id: int) -> str:
    return f"INV-{invoice_date.year}-{invoice_id:06d}"


class InvoiceRepository(IInvoiceRepository):
    """Repository for Invoice persistence operations."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_by_id(self, invoice_id: int) -> Optional[DomainInvoice]:
        db_invoice = self.db.get(DbInvoice, invoice_id, populate_existing=True)
        return self._to_domain(db_invoice, with_items=True) if db_invoice else None

    def get_for_update(self, invoice_id: int) -> Optional[DomainInvoice]:
        # FOR UPDATE is a no-op on SQLite; the unit of work lock covers it there
        stmt = (
            select(DbInvoice)
            .where(DbInvoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        db_invoice = self.db.scalars(stmt).first()
        return self._to_domain(db_invoice) if db_invoice else None

    def exists_for_appointment(self, appointment_id: int) -> bool:
        stmt = select(DbInvoice.id).where(DbInvoice.appointment_id == appointment_id)
        return self.db.scalars(stmt).first() is not None

    def get_by_patient(self, patient_id: int) -> List[DomainInvoice]:
        stmt = (
            select(DbInvoice)
            .where(DbInvoice.patient_id == patient_id)
            .order_by(DbInvoice.invoice_date.desc(), DbInvoice.id.desc())
        )
        return [self._to_domain(row) for row in self.db.scalars(stmt).all()]

    def get_by_date_range(self, start: datetime, end: datetime) -> List[DomainInvoice]:
        stmt = (
            select(DbInvoice)
            .where(DbInvoice.invoice_date >= start, DbInvoice.invoice_date <= end)
            .order_by(DbInvoice.invoice_date, DbInvoice.id)
        )
        return [self._to_domain(row) for row in self.db.scalars(stmt).all()]

    def outstanding_balance(self, patient_id: int) -> Decimal:
        stmt = select(
            func.coalesce(
                func.sum(
                    DbInvoice.total_amount
                    + DbInvoice.tax_amount
                    - DbInvoice.discount_amount
                ),
                0,
            )
        ).where(
            DbInvoice.patient_id == patient_id,
            DbInvoice.status.not_in(
                [int(InvoiceStatus.PAID), int(InvoiceStatus.CANCELLED)]
            ),
        )
        return to_money(self.db.scalar(stmt) or 0)

    def total_revenue(self, start: datetime, end: datetime) -> Decimal:
        stmt = select(func.coalesce(func.sum(DbInvoice.total_amount), 0)).where(
            DbInvoice.status == int(InvoiceStatus.PAID),
            DbInvoice.invoice_date >= start,
            DbInvoice.invoice_date <= end,
        )
        return to_money(self.db.scalar(stmt) or 0)

    def insert(self, invoice: DomainInvoice) -> DomainInvoice:
        db_invoice = DbInvoice(
            appointment_id=invoice.appointment_id,
            patient_id=invoice.patient_id,
            total_amount=invoice.total_amount,
            tax_amount=invoice.tax_amount,
            discount_amount=invoice.discount_amount,
            invoice_date=invoice.invoice_date,
            due_date=invoice.due_date,
            status=int(invoice.status),
            notes=invoice.notes,
        )
        self.db.add(db_invoice)
        flush_or_raise(self.db, "insert_invoice")
        db_invoice.invoice_number = format_invoice_number(
            db_invoice.invoice_date, db_invoice.id
        )
        flush_or_raise(self.db, "insert_invoice")
        return self._to_domain(db_invoice)

    def update_amounts(
        self, invoice_id: int, total: Decimal, tax: Decimal, discount: Decimal
    ) -> bool:
        return self._update(
            invoice_id, total_amount=total, tax_amount=tax, discount_amount=discount
        )

    def update_total(self, invoice_id: int, total: Decimal) -> bool:
        return self._update(invoice_id, total_amount=total)

    def update_status(self, invoice_id: int, status: InvoiceStatus) -> bool:
        return self._update(invoice_id, status=int(status))

    def _update(self, invoice_id: int, **values) -> bool:
        result = self.db.execute(
            update(DbInvoice).where(DbInvoice.id == invoice_id).values(**values)
        )
        return result.rowcount > 0

    def _to_domain(
        self, db_invoice: DbInvoice, with_items: bool = False
    ) -> DomainInvoice:
        """Convert database model to domain entity."""
        items: list[InvoiceLineItem] = []
        if with_items:
            stmt = (
                select(DbInvoiceItem)
                .where(DbInvoiceItem.invoice_id == db_invoice.id)
                .order_by(DbInvoiceItem.id)
            )
            items = [
                InvoiceLineItem(
                    id=row.id,
                    invoice_id=row.invoice_id,
                    description=row.description,
                    unit_price=row.unit_price,
                    quantity=row.quantity,
                )
                for row in self.db.scalars(stmt).all()
            ]
        return DomainInvoice(
            id=db_invoice.id,
            invoice_number=db_invoice.invoice_number,
            appointment_id=db_invoice.appointment_id,
            patient_id=db_invoice.patient_id,
            total_amount=db_invoice.total_amount,
            tax_amount=db_invoice.tax_amount,
            discount_amount=db_invoice.discount_amount,
            invoice_date=db_invoice.invoice_date,
            due_date=db_invoice.due_date,
            status=InvoiceStatus(db_invoice.status),
            notes=db_invoice.notes,
            items=items,
        )
