"""
Payment endpoints.
"""

from datetime import date

from flask import Blueprint, request

from clinic.controllers import get_services
from clinic.core.api_utils import bad_request, result_response
from clinic.schemas.dtos import PaymentCreateRequest, PaymentResponse

payment_bp = Blueprint("payments", __name__, url_prefix="/api")


def _payment(payment) -> dict:
    return PaymentResponse.from_domain(payment).to_dict()


def _receipt(receipt) -> dict:
    return {
        "payment": _payment(receipt.payment),
        "invoice_status": receipt.invoice_status.name.lower(),
        "total_paid": str(receipt.total_paid),
        "remaining_balance": str(receipt.remaining_balance),
    }


def _daily_income(report) -> dict:
    return {
        "day": report.day.isoformat(),
        "by_method": {m.value: str(v) for m, v in report.by_method.items()},
        "total": str(report.total),
    }


@payment_bp.route("/invoices/<int:invoice_id>/payments", methods=["POST"])
def apply_payment(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        payment_request = PaymentCreateRequest.from_payload(data, invoice_id)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().payments.apply(payment_request)
    return result_response(result, _receipt, success_status=201)


@payment_bp.route("/invoices/<int:invoice_id>/payments", methods=["GET"])
def list_invoice_payments(invoice_id: int):
    result = get_services().payments.get_invoice_payments(invoice_id)
    return result_response(result, lambda payments: [_payment(p) for p in payments])


@payment_bp.route("/invoices/<int:invoice_id>/balance", methods=["GET"])
def remaining_balance(invoice_id: int):
    result = get_services().payments.get_remaining_balance(invoice_id)
    return result_response(
        result,
        lambda balance: {"invoice_id": invoice_id, "remaining_balance": str(balance)},
    )


@payment_bp.route("/payments/<int:payment_id>", methods=["GET"])
def get_payment(payment_id: int):
    result = get_services().payments.get_payment(payment_id)
    return result_response(result, _payment)


@payment_bp.route("/payments/daily-income", methods=["GET"])
def daily_income():
    try:
        day = date.fromisoformat(request.args.get("day", ""))
    except ValueError:
        return bad_request("day must be an ISO 8601 date")
    result = get_services().payments.get_daily_income_report(day)
    return result_response(result, _daily_income)
