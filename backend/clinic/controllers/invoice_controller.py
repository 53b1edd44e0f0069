"""
Invoice and invoice item endpoints.
"""

from flask import Blueprint, request

from clinic.controllers import get_services
from clinic.core.api_utils import bad_request, result_response
from clinic.schemas.dtos import (
    InvoiceAmounts,
    InvoiceCreateRequest,
    InvoiceItemRequest,
    InvoiceItemResponse,
    InvoiceResponse,
    parse_datetime,
    parse_int,
    parse_invoice_status,
)

invoice_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")
invoice_item_bp = Blueprint("invoice_items", __name__, url_prefix="/api/invoice-items")


def _invoice(invoice) -> dict:
    return InvoiceResponse.from_domain(invoice).to_dict()


def _invoices(invoices) -> list:
    return [_invoice(i) for i in invoices]


def _ledger_update(update) -> dict:
    payload = {"invoice": _invoice(update.invoice)}
    if update.item is not None:
        payload["item"] = InvoiceItemResponse.from_domain(update.item).to_dict()
    return payload


@invoice_bp.route("", methods=["POST"])
def create_invoice():
    data = request.get_json(silent=True) or {}
    try:
        create_request = InvoiceCreateRequest.from_payload(data)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().invoices.create(create_request)
    return result_response(result, _invoice, success_status=201)


@invoice_bp.route("", methods=["GET"])
def list_invoices():
    """List a patient's invoices, or invoices dated within a range."""
    args = request.args
    try:
        if args.get("patient_id"):
            patient_id = parse_int(args.get("patient_id"), "patient_id")
            result = get_services().invoices.get_patient_invoices(patient_id)
        else:
            start = parse_datetime(args.get("start"), "start")
            end = parse_datetime(args.get("end"), "end")
            result = get_services().invoices.get_invoices_by_date_range(start, end)
    except ValueError as e:
        return bad_request(str(e))
    return result_response(result, _invoices)


@invoice_bp.route("/outstanding-balance/<int:patient_id>", methods=["GET"])
def outstanding_balance(patient_id: int):
    result = get_services().invoices.get_patient_outstanding_balance(patient_id)
    return result_response(
        result, lambda balance: {"patient_id": patient_id, "balance": str(balance)}
    )


@invoice_bp.route("/revenue", methods=["GET"])
def total_revenue():
    try:
        start = parse_datetime(request.args.get("start"), "start")
        end = parse_datetime(request.args.get("end"), "end")
    except ValueError as e:
        return bad_request(str(e))
    result = get_services().invoices.get_total_revenue(start, end)
    return result_response(result, lambda revenue: {"revenue": str(revenue)})


@invoice_bp.route("/<int:invoice_id>", methods=["GET"])
def get_invoice(invoice_id: int):
    result = get_services().invoices.get_invoice(invoice_id)
    return result_response(result, _invoice)


@invoice_bp.route("/<int:invoice_id>/amounts", methods=["PUT"])
def update_invoice_amounts(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        amounts = InvoiceAmounts.from_payload(data)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().invoices.update_amounts(invoice_id, amounts)
    return result_response(result, _invoice)


@invoice_bp.route("/<int:invoice_id>/status", methods=["PATCH"])
def transition_invoice_status(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        status = parse_invoice_status(data.get("status", ""))
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().invoices.transition_status(invoice_id, status)
    return result_response(result, _invoice)


@invoice_bp.route("/<int:invoice_id>/items", methods=["GET"])
def list_invoice_items(invoice_id: int):
    result = get_services().items.get_items(invoice_id)
    return result_response(
        result, lambda items: [InvoiceItemResponse.from_domain(i).to_dict() for i in items]
    )


@invoice_bp.route("/<int:invoice_id>/items", methods=["POST"])
def add_invoice_item(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item_request = InvoiceItemRequest.from_payload(data, invoice_id=invoice_id)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().items.add_item(item_request)
    return result_response(result, _ledger_update, success_status=201)


@invoice_item_bp.route("/<int:item_id>", methods=["PUT"])
def update_invoice_item(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item_request = InvoiceItemRequest.from_payload(data)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().items.update_item(item_id, item_request)
    return result_response(result, _ledger_update)


@invoice_item_bp.route("/<int:item_id>", methods=["DELETE"])
def delete_invoice_item(item_id: int):
    result = get_services().items.delete_item(item_id)
    return result_response(result, _ledger_update)
