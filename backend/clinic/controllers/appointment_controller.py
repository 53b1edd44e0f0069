"""
Appointment controller: HTTP concerns only, business rules live in
``AppointmentService``.
"""

from datetime import date

from flask import Blueprint, request

from clinic.controllers import get_services
from clinic.core.api_utils import bad_request, result_response
from clinic.domain.entities import AppointmentStatus
from clinic.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    parse_datetime,
    parse_int,
)

appointment_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _one(appointment) -> dict:
    return AppointmentResponse.from_domain(appointment).to_dict()


def _many(appointments) -> list:
    return [_one(a) for a in appointments]


@appointment_bp.route("", methods=["POST"])
def book_appointment():
    """Book a new appointment."""
    data = request.get_json(silent=True) or {}
    try:
        book_request = AppointmentCreateRequest.from_payload(data)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().appointments.book(book_request)
    return result_response(result, _one, success_status=201)


@appointment_bp.route("", methods=["GET"])
def list_appointments():
    """List appointments by date range, or one doctor's schedule for a day."""
    args = request.args
    try:
        if args.get("doctor_id"):
            doctor_id = parse_int(args.get("doctor_id"), "doctor_id")
            day = date.fromisoformat(args.get("day", ""))
            result = get_services().appointments.get_doctor_schedule(doctor_id, day)
        else:
            start = parse_datetime(args.get("start"), "start")
            end = parse_datetime(args.get("end"), "end")
            result = get_services().appointments.get_appointments_by_date_range(
                start, end
            )
    except ValueError as e:
        return bad_request(str(e))
    return result_response(result, _many)


@appointment_bp.route("/availability", methods=["GET"])
def slot_availability():
    args = request.args
    try:
        doctor_id = parse_int(args.get("doctor_id"), "doctor_id")
        start = parse_datetime(args.get("start"), "start")
        duration = parse_int(args.get("duration_minutes"), "duration_minutes")
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().appointments.is_slot_available(doctor_id, start, duration)
    return result_response(result, lambda available: {"available": available})


@appointment_bp.route("/<int:appointment_id>", methods=["GET"])
def get_appointment(appointment_id: int):
    result = get_services().appointments.get_appointment(appointment_id)
    return result_response(result, _one)


@appointment_bp.route("/<int:appointment_id>/status", methods=["PATCH"])
def set_appointment_status(appointment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        status = AppointmentStatus(str(data.get("status", "")).strip().lower())
    except ValueError:
        return bad_request(f"Unknown appointment status: {data.get('status')}")

    result = get_services().appointments.set_status(
        appointment_id, status, data.get("updated_by")
    )
    return result_response(result, _one)


@appointment_bp.route("/<int:appointment_id>/cancel", methods=["POST"])
def cancel_appointment(appointment_id: int):
    data = request.get_json(silent=True) or {}
    result = get_services().appointments.cancel(appointment_id, data.get("updated_by"))
    return result_response(result, _one)


@appointment_bp.route("/<int:appointment_id>/reschedule", methods=["POST"])
def reschedule_appointment(appointment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        reschedule_request = AppointmentRescheduleRequest.from_payload(data)
    except ValueError as e:
        return bad_request(str(e))

    result = get_services().appointments.reschedule(appointment_id, reschedule_request)
    return result_response(result, _one)
