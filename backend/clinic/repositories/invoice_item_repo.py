from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from clinic.db.base import InvoiceItem as DbInvoiceItem
from clinic.domain.entities import ZERO, InvoiceLineItem
from clinic.domain.interfaces import IInvoiceItemRepository
from clinic.repositories.errors import flush_or_raise


class InvoiceItemRepository(IInvoiceItemRepository):
    """Repository for invoice line items."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def list_items(self, invoice_id: int) -> List[InvoiceLineItem]:
        stmt = (
            select(DbInvoiceItem)
            .where(DbInvoiceItem.invoice_id == invoice_id)
            .order_by(DbInvoiceItem.id)
        )
        return [self._to_domain(row) for row in self.db.scalars(stmt).all()]

    def get_by_id(self, item_id: int) -> Optional[InvoiceLineItem]:
        db_item = self.db.get(DbInvoiceItem, item_id)
        return self._to_domain(db_item) if db_item else None

    def subtotal(self, invoice_id: int) -> Decimal:
        # Summed from quantized line totals so the result matches the domain rule
        return sum(
            (item.line_total for item in self.list_items(invoice_id)), ZERO
        )

    def insert(self, item: InvoiceLineItem) -> InvoiceLineItem:
        db_item = DbInvoiceItem(
            invoice_id=item.invoice_id,
            description=item.description,
            unit_price=item.unit_price,
            quantity=item.quantity,
        )
        self.db.add(db_item)
        flush_or_raise(self.db, "insert_invoice_item")
        return self._to_domain(db_item)

    def update(self, item: InvoiceLineItem) -> bool:
        result = self.db.execute(
            update(DbInvoiceItem)
            .where(DbInvoiceItem.id == item.id)
            .values(
                description=item.description,
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
        )
        return result.rowcount > 0

    def delete(self, item_id: int) -> bool:
        result = self.db.execute(
            delete(DbInvoiceItem).where(DbInvoiceItem.id == item_id)
        )
        return result.rowcount > 0

    def _to_domain(self, db_item: DbInvoiceItem) -> InvoiceLineItem:
        return InvoiceLineItem(
            id=db_item.id,
            invoice_id=db_item.invoice_id,
            description=db_item.description,
            unit_price=db_item.unit_price,
            quantity=db_item.quantity,
        )
