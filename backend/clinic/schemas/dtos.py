"""
Data Transfer Objects (DTOs) and validation schemas.

Request DTOs are built from JSON payloads with ``from_payload`` (raising
``ValueError`` when a field cannot be parsed at all) and report field-level
problems through ``validate()``, which returns a list of messages instead of
raising. Response DTOs are built from domain entities with ``from_domain``.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from clinic.core import config
from clinic.domain.entities import (
    ZERO,
    Appointment,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    to_money,
)


def parse_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field_name} must be an ISO 8601 datetime")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"{field_name} must be an ISO 8601 datetime") from None
    return config.to_local_naive(parsed)


def parse_date(value: Any, field_name: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"{field_name} must be an ISO 8601 date") from None


def parse_money(value: Any, field_name: str, default: Optional[Decimal] = None) -> Decimal:
    if value in (None, ""):
        if default is not None:
            return default
        raise ValueError(f"{field_name} is required")
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number")
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{field_name} must be a number") from None
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be a number")
    return amount


def parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{field_name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer") from None


def _money(value: Decimal) -> str:
    return str(to_money(value))


# ============================================================
# Appointments
# ============================================================


@dataclass
class AppointmentCreateRequest:
    """DTO for appointment booking requests."""

    patient_id: int
    doctor_id: int
    start: datetime
    duration_minutes: int
    reason: str
    created_by: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> "AppointmentCreateRequest":
        return cls(
            patient_id=parse_int(data.get("patient_id"), "patient_id"),
            doctor_id=parse_int(data.get("doctor_id"), "doctor_id"),
            start=parse_datetime(data.get("start"), "start"),
            duration_minutes=parse_int(
                data.get("duration_minutes"), "duration_minutes"
            ),
            reason=str(data.get("reason") or ""),
            created_by=data.get("created_by"),
        )

    def validate(self) -> List[str]:
        """Validate the request data."""
        errors = []
        if self.patient_id <= 0:
            errors.append("Valid patient_id is required")
        if self.doctor_id <= 0:
            errors.append("Valid doctor_id is required")
        if self.duration_minutes <= 0:
            errors.append("Duration must be positive")
        if not self.reason or not self.reason.strip():
            errors.append("Reason is required")
        elif len(self.reason.strip()) > config.APPOINTMENT_REASON_MAX_LENGTH:
            errors.append(
                f"Reason cannot exceed {config.APPOINTMENT_REASON_MAX_LENGTH} characters"
            )
        return errors


@dataclass
class AppointmentRescheduleRequest:
    start: datetime
    duration_minutes: int
    updated_by: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> "AppointmentRescheduleRequest":
        return cls(
            start=parse_datetime(data.get("start"), "start"),
            duration_minutes=parse_int(
                data.get("duration_minutes"), "duration_minutes"
            ),
            updated_by=data.get("updated_by"),
        )

    def validate(self) -> List[str]:
        if self.duration_minutes <= 0:
            return ["Duration must be positive"]
        return []


@dataclass
class AppointmentResponse:
    """DTO for appointment API responses."""

    id: int
    patient_id: int
    doctor_id: int
    start: str
    end: str
    duration_minutes: int
    status: str
    reason: str
    created_by: Optional[str]
    created_at: Optional[str]
    updated_by: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_domain(cls, appointment: Appointment) -> "AppointmentResponse":
        """Create response from domain entity."""
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            start=appointment.start.isoformat(),
            end=appointment.end.isoformat(),
            duration_minutes=appointment.slot.duration_minutes,
            status=appointment.status.value,
            reason=appointment.reason,
            created_by=appointment.created_by,
            created_at=(
                appointment.created_at.isoformat() if appointment.created_at else None
            ),
            updated_by=appointment.updated_by,
            updated_at=(
                appointment.updated_at.isoformat() if appointment.updated_at else None
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ============================================================
# Invoices
# ============================================================


@dataclass
class InvoiceAmounts:
    total_amount: Decimal
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO

    @classmethod
    def from_payload(cls, data: dict) -> "InvoiceAmounts":
        return cls(
            total_amount=parse_money(data.get("total_amount"), "total_amount"),
            tax_amount=parse_money(data.get("tax_amount"), "tax_amount", ZERO),
            discount_amount=parse_money(
                data.get("discount_amount"), "discount_amount", ZERO
            ),
        )


@dataclass
class InvoiceCreateRequest:
    """DTO for invoice creation requests."""

    appointment_id: int
    patient_id: int
    amounts: InvoiceAmounts
    due_date: Optional[date] = None
    status: InvoiceStatus = InvoiceStatus.ISSUED
    notes: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> "InvoiceCreateRequest":
        status = data.get("status")
        return cls(
            appointment_id=parse_int(data.get("appointment_id"), "appointment_id"),
            patient_id=parse_int(data.get("patient_id"), "patient_id"),
            amounts=InvoiceAmounts.from_payload(data),
            due_date=parse_date(data.get("due_date"), "due_date"),
            status=(
                InvoiceStatus.ISSUED if status is None else parse_invoice_status(status)
            ),
            notes=data.get("notes"),
        )

    def validate(self) -> List[str]:
        errors = []
        if self.appointment_id <= 0:
            errors.append("Valid appointment_id is required")
        if self.patient_id <= 0:
            errors.append("Valid patient_id is required")
        if self.status not in (InvoiceStatus.DRAFT, InvoiceStatus.ISSUED):
            errors.append("A new invoice must start as draft or issued")
        if self.notes and len(self.notes) > 500:
            errors.append("Notes cannot exceed 500 characters")
        return errors


def parse_invoice_status(value: Any) -> InvoiceStatus:
    """Accept an enum name (``"paid"``, ``"PARTIALLY_PAID"``) or its integer value."""
    if isinstance(value, InvoiceStatus):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return InvoiceStatus(value)
        except ValueError:
            raise ValueError(f"Unknown invoice status: {value}") from None
    name = str(value).strip().upper().replace(" ", "_")
    try:
        return InvoiceStatus[name]
    except KeyError:
        raise ValueError(f"Unknown invoice status: {value}") from None


@dataclass
class InvoiceItemRequest:
    """DTO for adding or editing an invoice line item."""

    description: str
    unit_price: Decimal
    quantity: int
    invoice_id: Optional[int] = None

    @classmethod
    def from_payload(
        cls, data: dict, invoice_id: Optional[int] = None
    ) -> "InvoiceItemRequest":
        quantity = data.get("quantity")
        if isinstance(quantity, str):
            quantity = parse_int(quantity, "quantity")
        # Non-integral quantities are left for the ledger to reject
        return cls(
            invoice_id=invoice_id,
            description=str(data.get("description") or ""),
            unit_price=parse_money(data.get("unit_price"), "unit_price"),
            quantity=quantity,
        )


@dataclass
class InvoiceItemResponse:
    id: int
    invoice_id: int
    description: str
    unit_price: str
    quantity: int
    line_total: str

    @classmethod
    def from_domain(cls, item: InvoiceLineItem) -> "InvoiceItemResponse":
        return cls(
            id=item.id,
            invoice_id=item.invoice_id,
            description=item.description,
            unit_price=_money(item.unit_price),
            quantity=item.quantity,
            line_total=_money(item.line_total),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class InvoiceResponse:
    """DTO for invoice API responses."""

    id: int
    invoice_number: Optional[str]
    appointment_id: int
    patient_id: int
    total_amount: str
    tax_amount: str
    discount_amount: str
    net_amount: str
    status: str
    invoice_date: Optional[str]
    due_date: Optional[str]
    notes: Optional[str]
    items: List[dict] = field(default_factory=list)

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            appointment_id=invoice.appointment_id,
            patient_id=invoice.patient_id,
            total_amount=_money(invoice.total_amount),
            tax_amount=_money(invoice.tax_amount),
            discount_amount=_money(invoice.discount_amount),
            net_amount=_money(invoice.net_amount),
            status=invoice.status.name.lower(),
            invoice_date=(
                invoice.invoice_date.isoformat() if invoice.invoice_date else None
            ),
            due_date=invoice.due_date.isoformat() if invoice.due_date else None,
            notes=invoice.notes,
            items=[InvoiceItemResponse.from_domain(i).to_dict() for i in invoice.items],
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ============================================================
# Payments
# ============================================================


@dataclass
class PaymentCreateRequest:
    """DTO for payment requests."""

    invoice_id: int
    amount: Decimal
    method: PaymentMethod = PaymentMethod.CASH
    transaction_ref: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict, invoice_id: int) -> "PaymentCreateRequest":
        method = data.get("method") or PaymentMethod.CASH.value
        try:
            parsed_method = PaymentMethod(str(method).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown payment method: {method}") from None
        ref = data.get("transaction_ref")
        return cls(
            invoice_id=invoice_id,
            amount=parse_money(data.get("amount"), "amount"),
            method=parsed_method,
            transaction_ref=str(ref).strip() if ref else None,
            notes=data.get("notes"),
        )


@dataclass
class PaymentResponse:
    id: int
    invoice_id: int
    amount: str
    method: str
    transaction_ref: Optional[str]
    paid_at: Optional[str]
    notes: Optional[str]

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            invoice_id=payment.invoice_id,
            amount=_money(payment.amount),
            method=payment.method.value,
            transaction_ref=payment.transaction_ref,
            paid_at=payment.paid_at.isoformat() if payment.paid_at else None,
            notes=payment.notes,
        )

    def to_dict(self) -> dict:
        return asdict(self)
