"""
Domain entities - Pure business logic, no framework dependencies.

Each entity represents one clinic concept: a time slot on a doctor's agenda,
an appointment occupying it, an invoice with its line items, and the payments
recorded against that invoice.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum, IntEnum
from typing import Optional, Union

from clinic.core.config import to_local_naive

CENT = Decimal("0.01")

MoneyLike = Union[Decimal, int, str, float]


def to_money(value: MoneyLike) -> Decimal:
    """Quantize a monetary value to cents.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.10")``
    rather than its binary approximation.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


ZERO = to_money(0)


@dataclass(frozen=True)
class TimeSlot:
    """Half-open interval ``[start, start + duration)`` on one doctor's agenda."""

    doctor_id: int
    start: datetime
    duration_minutes: int

    def __post_init__(self):
        """Validate business rules."""
        if self.duration_minutes <= 0:
            raise ValueError("Duration must be positive")
        object.__setattr__(self, "start", to_local_naive(self.start))

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def overlaps(self, other: "TimeSlot") -> bool:
        """True if the intervals share any instant. Touching ends do not overlap."""
        return self.start < other.end and other.start < self.end


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return not APPOINTMENT_TRANSITIONS[self]

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in APPOINTMENT_TRANSITIONS[self]


APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
}


@dataclass
class Appointment:
    """Domain entity for a booked appointment. Never physically deleted."""

    patient_id: int
    slot: TimeSlot
    reason: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    id: Optional[int] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate business rules."""
        if self.patient_id <= 0:
            raise ValueError("Valid patient_id is required")
        if self.slot.doctor_id <= 0:
            raise ValueError("Valid doctor_id is required")
        if not self.reason or not self.reason.strip():
            raise ValueError("Reason is required")
        self.status = AppointmentStatus(self.status)

    @property
    def doctor_id(self) -> int:
        return self.slot.doctor_id

    @property
    def start(self) -> datetime:
        return self.slot.start

    @property
    def end(self) -> datetime:
        return self.slot.end

    @property
    def is_active(self) -> bool:
        """Active appointments occupy the doctor's agenda."""
        return self.status != AppointmentStatus.CANCELED


class InvoiceStatus(IntEnum):
    """Invoice states. The integer order is the lifecycle order."""

    DRAFT = 0
    ISSUED = 1
    PARTIALLY_PAID = 2
    PAID = 3
    CANCELLED = 4

    @property
    def is_terminal(self) -> bool:
        return self in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


def derive_invoice_status(total: Decimal, paid: Decimal) -> InvoiceStatus:
    """Status implied by the amount paid against the invoice total."""
    if paid > 0 and paid >= total:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.ISSUED


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    INSURANCE = "insurance"

    @property
    def requires_reference(self) -> bool:
        return self is not PaymentMethod.CASH


@dataclass
class InvoiceLineItem:
    """One billable line on an invoice."""

    invoice_id: int
    description: str
    unit_price: Decimal
    quantity: int
    id: Optional[int] = None

    def __post_init__(self):
        """Validate business rules."""
        self.unit_price = to_money(self.unit_price)
        if self.unit_price < 0:
            raise ValueError("Unit price cannot be negative")
        if self.quantity <= 0:
            raise ValueError("Quantity must be positive")

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass
class Invoice:
    """Domain entity for an invoice tied to exactly one appointment."""

    appointment_id: int
    patient_id: int
    total_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.ISSUED
    invoice_date: Optional[datetime] = None
    due_date: Optional[date] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None
    items: list[InvoiceLineItem] = field(default_factory=list)

    def __post_init__(self):
        """Validate business rules."""
        self.total_amount = to_money(self.total_amount)
        self.tax_amount = to_money(self.tax_amount)
        self.discount_amount = to_money(self.discount_amount)
        self.status = InvoiceStatus(self.status)

    @property
    def net_amount(self) -> Decimal:
        return to_money(self.total_amount + self.tax_amount - self.discount_amount)

    @property
    def is_mutable(self) -> bool:
        """Items and amounts can change only before the invoice is settled."""
        return self.status < InvoiceStatus.PAID


@dataclass
class Payment:
    """A recorded payment. Append-only."""

    invoice_id: int
    amount: Decimal
    method: PaymentMethod = PaymentMethod.CASH
    transaction_ref: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.amount = to_money(self.amount)
        self.method = PaymentMethod(self.method)


@dataclass
class Person:
    """Identity and contact data shared by patients and doctors."""

    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.first_name:
            raise ValueError("First name is required")
        if self.email and "@" not in self.email:
            raise ValueError("Invalid email format")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Patient:
    person: Person
    id: Optional[int] = None


@dataclass
class Doctor:
    person: Person
    specialization: str = ""
    id: Optional[int] = None
