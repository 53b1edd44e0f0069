"""
Unit tests for PaymentService: the remaining balance bound, the order of the
rejection checks and the status the invoice ends up in.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from clinic.domain.entities import InvoiceStatus, PaymentMethod
from clinic.domain.results import ErrorCategory, PaymentResult
from clinic.schemas.dtos import PaymentCreateRequest
from clinic.services.invoice_service import InvoiceService
from clinic.services.payment_service import PaymentService, transaction_ref_ok
from tests.factories.domain_factories import make_invoice
from tests.factories.repository_factories import StubUnitOfWork

NOW = datetime(2025, 5, 1, 9, 0)


@pytest.fixture
def uow() -> StubUnitOfWork:
    store_uow = StubUnitOfWork()
    store_uow.store.payments.insert.side_effect = lambda payment: payment
    return store_uow


@pytest.fixture
def mock_invoice_repo(uow):
    return uow.store.invoices


@pytest.fixture
def mock_payment_repo(uow):
    return uow.store.payments


@pytest.fixture
def service(uow) -> PaymentService:
    clock = lambda: NOW  # noqa: E731
    return PaymentService(uow, InvoiceService(uow, clock=clock), clock=clock)


def payment(amount="100", method=PaymentMethod.CASH, ref=None, invoice_id=1):
    return PaymentCreateRequest(
        invoice_id=invoice_id,
        amount=Decimal(amount),
        method=method,
        transaction_ref=ref,
    )


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.billing
class TestPaymentApplier:
    def test_partial_payment(self, service, uow, mock_invoice_repo, mock_payment_repo):
        mock_invoice_repo.get_for_update.return_value = make_invoice(total="600")
        mock_payment_repo.sum_payments.side_effect = [Decimal("0"), Decimal("100.00")]

        result = service.apply(payment("100"))

        assert result.code == PaymentResult.SUCCESS
        assert result.data.invoice_status == InvoiceStatus.PARTIALLY_PAID
        assert result.data.remaining_balance == Decimal("500.00")
        assert result.data.payment.paid_at == NOW
        mock_invoice_repo.update_status.assert_called_once_with(
            1, InvoiceStatus.PARTIALLY_PAID
        )
        assert uow.lock_calls == [("invoice:1",)]

    def test_settling_payment(self, service, mock_invoice_repo, mock_payment_repo):
        mock_invoice_repo.get_for_update.return_value = make_invoice(
            total="600", status=InvoiceStatus.PARTIALLY_PAID
        )
        mock_payment_repo.sum_payments.side_effect = [
            Decimal("100.00"),
            Decimal("600.00"),
        ]

        result = service.apply(payment("500"))

        assert result.data.invoice_status == InvoiceStatus.PAID
        assert result.data.remaining_balance == Decimal("0.00")

    def test_overpayment_rejected(self, service, mock_invoice_repo, mock_payment_repo):
        mock_invoice_repo.get_for_update.return_value = make_invoice(
            total="600", status=InvoiceStatus.PARTIALLY_PAID
        )
        mock_payment_repo.sum_payments.return_value = Decimal("100.00")

        result = service.apply(payment("999999"))

        assert result.code == PaymentResult.AMOUNT_EXCEEDS_REMAINING_BALANCE
        assert result.category == ErrorCategory.INVARIANT_VIOLATION
        mock_payment_repo.insert.assert_not_called()

    @pytest.mark.parametrize(
        "status,expected",
        [
            (InvoiceStatus.PAID, PaymentResult.INVOICE_ALREADY_PAID),
            (InvoiceStatus.CANCELLED, PaymentResult.INVOICE_CANCELLED),
        ],
    )
    def test_closed_invoice(self, service, mock_invoice_repo, status, expected):
        mock_invoice_repo.get_for_update.return_value = make_invoice(status=status)
        # Status is checked before the amount
        assert service.apply(payment("0")).code == expected

    def test_unknown_invoice(self, service):
        assert service.apply(payment()).code == PaymentResult.INVOICE_NOT_FOUND

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, service, mock_invoice_repo, amount):
        mock_invoice_repo.get_for_update.return_value = make_invoice()
        assert service.apply(payment(amount)).code == PaymentResult.INVALID_PAYMENT_AMOUNT

    def test_sub_cent_amount_is_rounded_before_checks(
        self, service, mock_invoice_repo, mock_payment_repo
    ):
        mock_invoice_repo.get_for_update.return_value = make_invoice(total="600")

        result = service.apply(payment("0.004"))

        assert result.code == PaymentResult.INVALID_PAYMENT_AMOUNT
        mock_payment_repo.insert.assert_not_called()

    def test_amount_rounding_to_remaining_balance_settles(
        self, service, mock_invoice_repo, mock_payment_repo
    ):
        mock_invoice_repo.get_for_update.return_value = make_invoice(total="600")
        mock_payment_repo.insert.side_effect = lambda p: p
        mock_payment_repo.sum_payments.side_effect = [Decimal("0"), Decimal("600.00")]

        result = service.apply(payment("600.004"))

        assert result.code == PaymentResult.SUCCESS
        assert result.data.payment.amount == Decimal("600.00")
        assert result.data.invoice_status == InvoiceStatus.PAID

    def test_card_needs_reference(self, service, mock_invoice_repo, mock_payment_repo):
        mock_invoice_repo.get_for_update.return_value = make_invoice()

        result = service.apply(payment("100", PaymentMethod.CARD))

        assert result.code == PaymentResult.TRANSACTION_REF_REQUIRED
        mock_payment_repo.insert.assert_not_called()

    def test_card_with_reference(self, service, mock_invoice_repo, mock_payment_repo):
        mock_invoice_repo.get_for_update.return_value = make_invoice()
        mock_payment_repo.sum_payments.side_effect = [Decimal("0"), Decimal("100.00")]

        result = service.apply(payment("100", PaymentMethod.CARD, "AUTH-83721"))

        assert result.is_success
        assert result.data.payment.transaction_ref == "AUTH-83721"

    @pytest.mark.parametrize(
        "method,ref,ok",
        [
            (PaymentMethod.CASH, None, True),
            (PaymentMethod.BANK_TRANSFER, "", False),
            (PaymentMethod.INSURANCE, "ab", False),
            (PaymentMethod.INSURANCE, "CLAIM-1", True),
            (PaymentMethod.CARD, "x" * 51, False),
        ],
    )
    def test_transaction_reference_rules(self, method, ref, ok):
        assert transaction_ref_ok(method, ref) is ok


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.billing
class TestPaymentQueries:
    def test_remaining_balance(self, service, mock_invoice_repo, mock_payment_repo):
        mock_invoice_repo.get_by_id.return_value = make_invoice(total="600")
        mock_payment_repo.sum_payments.return_value = Decimal("100.00")

        assert service.get_remaining_balance(1).data == Decimal("500.00")

    def test_payment_not_found(self, service):
        assert service.get_payment(3).code == PaymentResult.PAYMENT_NOT_FOUND

    def test_daily_income(self, service, mock_payment_repo):
        mock_payment_repo.daily_income_by_method.return_value = {
            PaymentMethod.CASH: Decimal("100.00"),
            PaymentMethod.CARD: Decimal("250.50"),
        }

        result = service.get_daily_income_report(date(2025, 6, 1))

        assert result.code == PaymentResult.SUCCESS
        assert result.data.total == Decimal("350.50")

    def test_daily_income_no_data(self, service):
        result = service.get_daily_income_report(date(2025, 6, 1))
        assert result.code == PaymentResult.NO_DATA
        assert result.data.total == Decimal("0.00")
