"""
Unit tests for the scheduling and billing value types.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from clinic.core import config
from clinic.domain.entities import (
    AppointmentStatus,
    InvoiceStatus,
    PaymentMethod,
    TimeSlot,
    derive_invoice_status,
    to_money,
)
from tests.factories.domain_factories import at, make_invoice, make_item


@pytest.mark.unit
@pytest.mark.appointment
class TestTimeSlot:
    def test_end_is_start_plus_duration(self):
        slot = TimeSlot(1, at(10), 45)
        assert slot.end == at(10, 45)

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration_rejected(self, duration):
        with pytest.raises(ValueError, match="Duration must be positive"):
            TimeSlot(1, at(10), duration)

    def test_partial_overlap(self):
        assert TimeSlot(1, at(10), 30).overlaps(TimeSlot(1, at(10, 15), 30))

    def test_contained_slot_overlaps(self):
        assert TimeSlot(1, at(10), 120).overlaps(TimeSlot(1, at(11), 15))

    def test_touching_boundaries_do_not_overlap(self):
        first = TimeSlot(1, at(10), 30)
        second = TimeSlot(1, at(10, 30), 30)
        assert not first.overlaps(second)
        assert not second.overlaps(first)

    def test_aware_start_is_converted_to_clinic_time(self):
        aware = datetime(2025, 6, 1, 13, 0, tzinfo=timezone.utc)
        slot = TimeSlot(1, aware, 30)
        assert slot.start.tzinfo is None
        assert slot.start == aware.astimezone(config.APP_TZ).replace(tzinfo=None)

    def test_slot_is_immutable(self):
        slot = TimeSlot(1, at(10), 30)
        with pytest.raises(AttributeError):
            slot.start = at(11)


@pytest.mark.unit
@pytest.mark.appointment
class TestAppointmentStatusGraph:
    @pytest.mark.parametrize(
        "current,target",
        [
            (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.PENDING, AppointmentStatus.CANCELED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED),
        ],
    )
    def test_allowed_moves(self, current, target):
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING),
            (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED),
            (AppointmentStatus.CANCELED, AppointmentStatus.PENDING),
        ],
    )
    def test_rejected_moves(self, current, target):
        assert not current.can_transition_to(target)

    def test_terminal_states(self):
        assert AppointmentStatus.COMPLETED.is_terminal
        assert AppointmentStatus.CANCELED.is_terminal
        assert not AppointmentStatus.PENDING.is_terminal


@pytest.mark.unit
@pytest.mark.billing
class TestMoneyAndInvoiceValues:
    def test_to_money_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(0.1) == Decimal("0.10")

    def test_net_amount(self):
        invoice = make_invoice(total="500", tax="75", discount="25")
        assert invoice.net_amount == Decimal("550.00")

    def test_line_total(self):
        assert make_item(unit_price="19.99", quantity=3).line_total == Decimal("59.97")

    def test_item_rejects_negative_price(self):
        with pytest.raises(ValueError):
            make_item(unit_price="-1")

    def test_invoice_mutability_threshold(self):
        assert make_invoice(status=InvoiceStatus.DRAFT).is_mutable
        assert make_invoice(status=InvoiceStatus.PARTIALLY_PAID).is_mutable
        assert not make_invoice(status=InvoiceStatus.PAID).is_mutable
        assert not make_invoice(status=InvoiceStatus.CANCELLED).is_mutable

    @pytest.mark.parametrize(
        "paid,expected",
        [
            ("0", InvoiceStatus.ISSUED),
            ("100", InvoiceStatus.PARTIALLY_PAID),
            ("600", InvoiceStatus.PAID),
        ],
    )
    def test_derived_status(self, paid, expected):
        assert derive_invoice_status(Decimal("600"), Decimal(paid)) == expected

    def test_cash_needs_no_reference(self):
        assert not PaymentMethod.CASH.requires_reference
        assert PaymentMethod.CARD.requires_reference
        assert PaymentMethod.INSURANCE.requires_reference
