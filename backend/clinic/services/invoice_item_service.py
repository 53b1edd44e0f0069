"""
Line item ledger.

Every item mutation runs under the invoice lock and is followed, in the same
transaction, by a recomputation of the invoice subtotal which is pushed to
``InvoiceService.sync_total``. The invoice total therefore always equals the
sum of its line totals once an item has been touched.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from clinic.core import config
from clinic.core.exceptions import InfrastructureError
from clinic.core.locks import invoice_lock
from clinic.domain.entities import Invoice, InvoiceLineItem, InvoiceStatus
from clinic.domain.interfaces import ClinicStore, IUnitOfWork
from clinic.domain.results import InvoiceItemResult, ServiceResult
from clinic.schemas.dtos import InvoiceItemRequest
from clinic.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


@dataclass
class LedgerUpdate:
    """Result payload of an item mutation: the item and the re-synced invoice."""

    invoice: Invoice
    item: Optional[InvoiceLineItem] = None


def check_item_fields(request: InvoiceItemRequest) -> Optional[InvoiceItemResult]:
    """Return the first field rule the request breaks, or None."""
    description = (request.description or "").strip()
    if not description:
        return InvoiceItemResult.DESCRIPTION_REQUIRED
    if not (
        config.ITEM_DESCRIPTION_MIN_LENGTH
        <= len(description)
        <= config.ITEM_DESCRIPTION_MAX_LENGTH
    ):
        return InvoiceItemResult.VALIDATION_ERROR
    quantity = request.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        return InvoiceItemResult.INVALID_QUANTITY
    if request.unit_price is None or request.unit_price < 0:
        return InvoiceItemResult.INVALID_PRICE
    return None


def check_invoice_open(invoice: Optional[Invoice]) -> Optional[InvoiceItemResult]:
    if invoice is None:
        return InvoiceItemResult.PARENT_INVOICE_NOT_FOUND
    if invoice.status == InvoiceStatus.CANCELLED:
        return InvoiceItemResult.INVOICE_CANCELLED
    if not InvoiceService.is_mutable(invoice):
        return InvoiceItemResult.INVOICE_ALREADY_CLOSED
    return None


class InvoiceItemService:
    """Application service maintaining an invoice's billable items."""

    def __init__(self, uow: IUnitOfWork, invoice_service: InvoiceService):
        self.uow = uow
        self.invoice_service = invoice_service

    def add_item(self, request: InvoiceItemRequest) -> ServiceResult[LedgerUpdate]:
        if request.invoice_id is None or request.invoice_id <= 0:
            return ServiceResult.failure(
                InvoiceItemResult.VALIDATION_ERROR,
                validation_errors=["Valid invoice_id is required"],
            )
        rejected = check_item_fields(request)
        if rejected:
            return ServiceResult.failure(rejected)

        invoice_id = request.invoice_id
        try:
            with self.uow.begin(invoice_lock(invoice_id)) as store:
                invoice = store.invoices.get_for_update(invoice_id)
                rejected = check_invoice_open(invoice)
                if rejected:
                    return ServiceResult.failure(rejected)

                new_item = InvoiceLineItem(
                    invoice_id=invoice_id,
                    description=request.description.strip(),
                    unit_price=request.unit_price,
                    quantity=request.quantity,
                )
                projected = store.items.subtotal(invoice_id) + new_item.line_total
                rejected = self._check_projected_total(store, invoice, projected)
                if rejected:
                    return ServiceResult.failure(rejected)

                item = store.items.insert(new_item)
                invoice = self._resync(store, invoice)
        except InfrastructureError:
            logger.error(
                "Adding invoice item failed",
                exc_info=True,
                extra={"context": {"invoice_id": invoice_id}},
            )
            return ServiceResult.failure(InvoiceItemResult.DATABASE_ERROR)

        self._log_change("Invoice item added", invoice, item.id)
        return ServiceResult.success(
            InvoiceItemResult.ADDED_SUCCESSFULLY, LedgerUpdate(invoice, item)
        )

    def update_item(
        self, item_id: int, request: InvoiceItemRequest
    ) -> ServiceResult[LedgerUpdate]:
        rejected = check_item_fields(request)
        if rejected:
            return ServiceResult.failure(rejected)

        try:
            invoice_id = self._owning_invoice_id(item_id)
            if invoice_id is None:
                return ServiceResult.failure(InvoiceItemResult.ITEM_NOT_FOUND)

            with self.uow.begin(invoice_lock(invoice_id)) as store:
                existing = store.items.get_by_id(item_id)
                if existing is None:
                    return ServiceResult.failure(InvoiceItemResult.ITEM_NOT_FOUND)
                invoice = store.invoices.get_for_update(invoice_id)
                rejected = check_invoice_open(invoice)
                if rejected:
                    return ServiceResult.failure(rejected)

                replacement = InvoiceLineItem(
                    id=item_id,
                    invoice_id=invoice_id,
                    description=request.description.strip(),
                    unit_price=request.unit_price,
                    quantity=request.quantity,
                )
                projected = (
                    store.items.subtotal(invoice_id)
                    - existing.line_total
                    + replacement.line_total
                )
                rejected = self._check_projected_total(store, invoice, projected)
                if rejected:
                    return ServiceResult.failure(rejected)

                store.items.update(replacement)
                invoice = self._resync(store, invoice)
        except InfrastructureError:
            logger.error(
                "Updating invoice item failed",
                exc_info=True,
                extra={"context": {"item_id": item_id}},
            )
            return ServiceResult.failure(InvoiceItemResult.DATABASE_ERROR)

        self._log_change("Invoice item updated", invoice, item_id)
        return ServiceResult.success(
            InvoiceItemResult.UPDATED_SUCCESSFULLY, LedgerUpdate(invoice, replacement)
        )

    def delete_item(self, item_id: int) -> ServiceResult[LedgerUpdate]:
        try:
            invoice_id = self._owning_invoice_id(item_id)
            if invoice_id is None:
                return ServiceResult.failure(InvoiceItemResult.ITEM_NOT_FOUND)

            with self.uow.begin(invoice_lock(invoice_id)) as store:
                existing = store.items.get_by_id(item_id)
                if existing is None:
                    return ServiceResult.failure(InvoiceItemResult.ITEM_NOT_FOUND)
                invoice = store.invoices.get_for_update(invoice_id)
                rejected = check_invoice_open(invoice)
                if rejected:
                    return ServiceResult.failure(rejected)

                projected = store.items.subtotal(invoice_id) - existing.line_total
                rejected = self._check_projected_total(store, invoice, projected)
                if rejected:
                    return ServiceResult.failure(rejected)

                store.items.delete(item_id)
                invoice = self._resync(store, invoice)
        except InfrastructureError:
            logger.error(
                "Deleting invoice item failed",
                exc_info=True,
                extra={"context": {"item_id": item_id}},
            )
            return ServiceResult.failure(InvoiceItemResult.DATABASE_ERROR)

        self._log_change("Invoice item deleted", invoice, item_id)
        return ServiceResult.success(
            InvoiceItemResult.DELETED_SUCCESSFULLY, LedgerUpdate(invoice)
        )

    def get_items(self, invoice_id: int) -> ServiceResult[List[InvoiceLineItem]]:
        try:
            with self.uow.begin() as store:
                if store.invoices.get_by_id(invoice_id) is None:
                    return ServiceResult.failure(
                        InvoiceItemResult.PARENT_INVOICE_NOT_FOUND
                    )
                items = store.items.list_items(invoice_id)
        except InfrastructureError:
            logger.error("Invoice item listing failed", exc_info=True)
            return ServiceResult.failure(InvoiceItemResult.DATABASE_ERROR)
        if not items:
            return ServiceResult.success(InvoiceItemResult.NO_DATA, [])
        return ServiceResult.success(InvoiceItemResult.SUCCESS, items)

    # ------------------------------------------------------------------

    def _owning_invoice_id(self, item_id: int) -> Optional[int]:
        # An item never moves between invoices
        with self.uow.begin() as store:
            item = store.items.get_by_id(item_id)
        return item.invoice_id if item else None

    def _resync(self, store: ClinicStore, invoice: Invoice) -> Invoice:
        subtotal = store.items.subtotal(invoice.id)
        synced = self.invoice_service.sync_total(store, invoice, subtotal)
        return store.invoices.get_by_id(synced.id) or synced

    @staticmethod
    def _check_projected_total(
        store: ClinicStore, invoice: Invoice, projected: Decimal
    ) -> Optional[InvoiceItemResult]:
        """Reject a change whose new subtotal would undercut payments or the discount."""
        paid = store.payments.sum_payments(invoice.id)
        if projected < paid:
            rejected = InvoiceItemResult.NEGATIVE_BALANCE
        elif projected < invoice.discount_amount:
            rejected = InvoiceItemResult.DISCOUNT_EXCEEDS_TOTAL
        else:
            return None
        logger.info(
            "Item change rejected",
            extra={
                "context": {
                    "invoice_id": invoice.id,
                    "reason": rejected.value,
                    "projected_total": projected,
                    "total_paid": paid,
                    "discount_amount": invoice.discount_amount,
                }
            },
        )
        return rejected

    @staticmethod
    def _log_change(message: str, invoice: Invoice, item_id: Optional[int]) -> None:
        logger.info(
            message,
            extra={
                "context": {
                    "invoice_id": invoice.id,
                    "item_id": item_id,
                    "total_amount": invoice.total_amount,
                }
            },
        )
