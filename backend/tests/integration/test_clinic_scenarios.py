"""
End-to-end scheduling and billing scenarios against a SQLite database.

Each test builds on fresh tables: book appointments, bill them, add items
and take payments through the real services and repositories.
"""

import threading
from datetime import datetime
from decimal import Decimal

import pytest

from clinic.domain.entities import AppointmentStatus, InvoiceStatus
from clinic.domain.results import (
    AppointmentResult,
    InvoiceItemResult,
    InvoiceResult,
    PaymentResult,
)
from clinic.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentRescheduleRequest,
    InvoiceAmounts,
    InvoiceCreateRequest,
    InvoiceItemRequest,
    PaymentCreateRequest,
)


def book(services, seeded, start, duration=30, doctor_id=None, patient_id=None):
    return services.appointments.book(
        AppointmentCreateRequest(
            patient_id=patient_id or seeded.patient_id,
            doctor_id=doctor_id or seeded.doctor_id,
            start=start,
            duration_minutes=duration,
            reason="General consultation",
        )
    )


def invoice_for(services, seeded, total, tax="0", discount="0", start=None):
    booked = book(services, seeded, start or datetime(2025, 6, 1, 9, 0))
    assert booked.is_success, booked.code
    created = services.invoices.create(
        InvoiceCreateRequest(
            appointment_id=booked.data.id,
            patient_id=seeded.patient_id,
            amounts=InvoiceAmounts(Decimal(total), Decimal(tax), Decimal(discount)),
        )
    )
    assert created.is_success, created.code
    return created.data


def pay(services, invoice_id, amount):
    return services.payments.apply(
        PaymentCreateRequest(invoice_id=invoice_id, amount=Decimal(amount))
    )


def add_item(services, invoice_id, price, quantity=1, description="Consultation"):
    return services.items.add_item(
        InvoiceItemRequest(
            description=description,
            unit_price=Decimal(price),
            quantity=quantity,
            invoice_id=invoice_id,
        )
    )


@pytest.mark.integration
@pytest.mark.appointment
class TestBookingScenario:
    def test_overlap_rejected_touching_accepted(self, services, seeded):
        first = book(services, seeded, datetime(2025, 6, 1, 10, 0))
        assert first.code == AppointmentResult.SUCCESS
        assert first.data.status == AppointmentStatus.PENDING

        overlapping = book(services, seeded, datetime(2025, 6, 1, 10, 15))
        assert overlapping.code == AppointmentResult.DOCTOR_BUSY

        touching = book(services, seeded, datetime(2025, 6, 1, 10, 30))
        assert touching.code == AppointmentResult.SUCCESS

    def test_other_doctor_is_free_at_same_time(self, services, seeded):
        assert book(services, seeded, datetime(2025, 6, 1, 10, 0)).is_success
        other = book(
            services, seeded, datetime(2025, 6, 1, 10, 0), doctor_id=seeded.other_doctor_id
        )
        assert other.is_success

    def test_canceled_appointment_frees_its_slot(self, services, seeded):
        first = book(services, seeded, datetime(2025, 6, 1, 10, 0))
        assert services.appointments.cancel(first.data.id).is_success

        again = book(services, seeded, datetime(2025, 6, 1, 10, 0))
        assert again.code == AppointmentResult.SUCCESS

    def test_reschedule_within_own_slot(self, services, seeded):
        first = book(services, seeded, datetime(2025, 6, 1, 10, 0))
        book(services, seeded, datetime(2025, 6, 1, 11, 0))

        moved = services.appointments.reschedule(
            first.data.id,
            AppointmentRescheduleRequest(datetime(2025, 6, 1, 10, 15), 30),
        )
        assert moved.code == AppointmentResult.SUCCESS
        assert moved.data.start == datetime(2025, 6, 1, 10, 15)

        blocked = services.appointments.reschedule(
            first.data.id, AppointmentRescheduleRequest(datetime(2025, 6, 1, 10, 45), 30)
        )
        assert blocked.code == AppointmentResult.DOCTOR_BUSY

    def test_status_lifecycle(self, services, seeded):
        booked = book(services, seeded, datetime(2025, 6, 1, 10, 0))
        appointment_id = booked.data.id

        assert (
            services.appointments.complete(appointment_id).code
            == AppointmentResult.INVALID_STATUS_TRANSITION
        )
        assert services.appointments.confirm(appointment_id, "desk").is_success
        completed = services.appointments.complete(appointment_id, "dr.house")
        assert completed.data.status == AppointmentStatus.COMPLETED
        assert completed.data.updated_by == "dr.house"
        assert (
            services.appointments.cancel(appointment_id).code
            == AppointmentResult.INVALID_STATUS_TRANSITION
        )

    def test_unknown_patient(self, services, seeded):
        result = book(services, seeded, datetime(2025, 6, 1, 10, 0), patient_id=999)
        assert result.code == AppointmentResult.PATIENT_NOT_FOUND


@pytest.mark.integration
@pytest.mark.billing
class TestBillingScenarios:
    def test_item_sync_overwrites_manual_total(self, services, seeded):
        invoice = invoice_for(services, seeded, "500", tax="75", discount="25")
        assert invoice.net_amount == Decimal("550.00")
        assert invoice.invoice_number == f"INV-2025-{invoice.id:06d}"

        added = add_item(services, invoice.id, "150")
        assert added.code == InvoiceItemResult.ADDED_SUCCESSFULLY

        reloaded = services.invoices.get_invoice(invoice.id).data
        assert reloaded.total_amount == Decimal("150.00")
        assert sum(i.line_total for i in reloaded.items) == Decimal("150.00")

    def test_payments_settle_invoice(self, services, seeded):
        invoice = invoice_for(services, seeded, "600")

        first = pay(services, invoice.id, "100")
        assert first.code == PaymentResult.SUCCESS
        assert first.data.invoice_status == InvoiceStatus.PARTIALLY_PAID
        assert first.data.remaining_balance == Decimal("500.00")

        second = pay(services, invoice.id, "500")
        assert second.data.invoice_status == InvoiceStatus.PAID
        assert second.data.remaining_balance == Decimal("0.00")

        third = pay(services, invoice.id, "1")
        assert third.code == PaymentResult.INVOICE_ALREADY_PAID

    def test_overpayment_leaves_no_payment_row(self, services, seeded):
        invoice = invoice_for(services, seeded, "600")
        pay(services, invoice.id, "100")

        result = pay(services, invoice.id, "999999")

        assert result.code == PaymentResult.AMOUNT_EXCEEDS_REMAINING_BALANCE
        assert len(services.payments.get_invoice_payments(invoice.id).data) == 1
        assert services.payments.get_remaining_balance(invoice.id).data == Decimal(
            "500.00"
        )

    def test_paid_invoice_items_are_frozen(self, services, seeded):
        invoice = invoice_for(services, seeded, "150")
        item = add_item(services, invoice.id, "150").data.item
        assert pay(services, invoice.id, "150").data.invoice_status == InvoiceStatus.PAID

        result = services.items.delete_item(item.id)

        assert result.code == InvoiceItemResult.INVOICE_ALREADY_CLOSED
        items = services.items.get_items(invoice.id).data
        assert [i.id for i in items] == [item.id]
        assert services.invoices.get_invoice(invoice.id).data.total_amount == Decimal(
            "150.00"
        )

    def test_one_invoice_per_appointment(self, services, seeded):
        invoice = invoice_for(services, seeded, "200")

        duplicate = services.invoices.create(
            InvoiceCreateRequest(
                appointment_id=invoice.appointment_id,
                patient_id=seeded.patient_id,
                amounts=InvoiceAmounts(Decimal("100")),
            )
        )

        assert duplicate.code == InvoiceResult.APPOINTMENT_ALREADY_HAS_INVOICE

    def test_item_below_paid_amount_keeps_invoice_consistent(self, services, seeded):
        invoice = invoice_for(services, seeded, "600")
        assert pay(services, invoice.id, "100").is_success

        result = add_item(services, invoice.id, "50")

        assert result.code == InvoiceItemResult.NEGATIVE_BALANCE
        reloaded = services.invoices.get_invoice(invoice.id).data
        assert reloaded.total_amount == Decimal("600.00")
        assert reloaded.status == InvoiceStatus.PARTIALLY_PAID
        assert reloaded.items == []
        assert services.payments.get_remaining_balance(invoice.id).data == Decimal(
            "500.00"
        )

    def test_item_below_discount_is_rejected(self, services, seeded):
        invoice = invoice_for(services, seeded, "500", discount="200")

        result = add_item(services, invoice.id, "150")

        assert result.code == InvoiceItemResult.DISCOUNT_EXCEEDS_TOTAL
        reloaded = services.invoices.get_invoice(invoice.id).data
        assert reloaded.total_amount == Decimal("500.00")
        assert reloaded.net_amount == Decimal("300.00")

    def test_repeated_reads_return_equal_invoices(self, services, seeded):
        invoice = invoice_for(services, seeded, "100")
        add_item(services, invoice.id, "80", description="Consultation")
        add_item(services, invoice.id, "35.50", quantity=2, description="Blood test")

        first = services.invoices.get_invoice(invoice.id)
        second = services.invoices.get_invoice(invoice.id)

        assert first.is_success and second.is_success
        assert first.data == second.data
        assert [i.description for i in first.data.items] == [
            "Consultation",
            "Blood test",
        ]
        assert first.data.total_amount == Decimal("151.00")


@pytest.mark.integration
@pytest.mark.concurrency
class TestConcurrentWriters:
    def test_concurrent_bookings_for_same_slot(self, services, seeded):
        barrier = threading.Barrier(2)
        results = []

        def worker():
            barrier.wait()
            results.append(book(services, seeded, datetime(2025, 6, 1, 14, 0), 60))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        codes = sorted(r.code.value for r in results)
        assert codes == ["DoctorBusy", "Success"]
        schedule = services.appointments.get_doctor_schedule(
            seeded.doctor_id, datetime(2025, 6, 1).date()
        )
        assert len(schedule.data) == 1

    def test_concurrent_payments_never_exceed_total(self, services, seeded):
        invoice = invoice_for(services, seeded, "600")
        barrier = threading.Barrier(2)
        results = []

        def worker():
            barrier.wait()
            results.append(pay(services, invoice.id, "400"))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        codes = sorted(r.code.value for r in results)
        assert codes == ["AmountExceedsRemainingBalance", "Success"]
        assert services.payments.get_remaining_balance(invoice.id).data == Decimal(
            "200.00"
        )
