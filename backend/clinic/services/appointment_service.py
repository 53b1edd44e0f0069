"""
Appointment lifecycle: booking, status changes and rescheduling.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional

from clinic.core import config
from clinic.core.exceptions import InfrastructureError
from clinic.core.locks import appointment_lock, doctor_lock
from clinic.domain.entities import Appointment, AppointmentStatus, TimeSlot
from clinic.domain.interfaces import IUnitOfWork
from clinic.domain.results import AppointmentResult, ServiceResult
from clinic.schemas.dtos import AppointmentCreateRequest, AppointmentRescheduleRequest
from clinic.services.conflict_detector import ConflictDetector

logger = logging.getLogger(__name__)

RESCHEDULABLE = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class AppointmentService:
    """Application service for appointment-related use-cases.

    Business Rules:
    - Appointments are booked strictly in the future, inside working hours
    - A doctor never holds two overlapping live appointments
    - Status changes follow Pending -> Confirmed -> Completed, with
      cancellation allowed from Pending or Confirmed
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        conflict_detector: Optional[ConflictDetector] = None,
        clock: Callable[[], datetime] = config.now_local,
    ):
        self.uow = uow
        self.conflict_detector = conflict_detector or ConflictDetector()
        self.clock = clock

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def book(self, request: AppointmentCreateRequest) -> ServiceResult[Appointment]:
        """Book a new appointment in Pending status."""
        errors = request.validate()
        if errors:
            return ServiceResult.failure(
                AppointmentResult.VALIDATION_ERROR, validation_errors=errors
            )

        slot = TimeSlot(request.doctor_id, request.start, request.duration_minutes)
        now = self.clock()
        rejected = self._check_slot_timing(slot, now)
        if rejected:
            return rejected

        try:
            with self.uow.begin(doctor_lock(slot.doctor_id)) as store:
                if not store.people.patient_exists(request.patient_id):
                    return ServiceResult.failure(AppointmentResult.PATIENT_NOT_FOUND)
                if not store.people.doctor_exists(slot.doctor_id):
                    return ServiceResult.failure(AppointmentResult.DOCTOR_NOT_FOUND)

                conflicts = self.conflict_detector.find_conflicts(
                    store.appointments, slot
                )
                if conflicts:
                    logger.info(
                        "Booking rejected: doctor busy",
                        extra={
                            "context": {
                                "doctor_id": slot.doctor_id,
                                "start": slot.start.isoformat(),
                                "conflicting_ids": [a.id for a in conflicts],
                            }
                        },
                    )
                    return ServiceResult.failure(AppointmentResult.DOCTOR_BUSY)

                appointment = store.appointments.insert(
                    Appointment(
                        patient_id=request.patient_id,
                        slot=slot,
                        reason=request.reason.strip(),
                        status=AppointmentStatus.PENDING,
                        created_by=request.created_by,
                        created_at=now,
                    )
                )
        except InfrastructureError:
            logger.error(
                "Booking failed",
                exc_info=True,
                extra={"context": {"doctor_id": slot.doctor_id}},
            )
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)

        logger.info(
            "Appointment booked",
            extra={
                "context": {
                    "appointment_id": appointment.id,
                    "doctor_id": appointment.doctor_id,
                    "patient_id": appointment.patient_id,
                    "start": appointment.start.isoformat(),
                }
            },
        )
        return ServiceResult.success(AppointmentResult.SUCCESS, appointment)

    def reschedule(
        self, appointment_id: int, request: AppointmentRescheduleRequest
    ) -> ServiceResult[Appointment]:
        """Move a live appointment to a new start time and duration."""
        errors = request.validate()
        if errors:
            return ServiceResult.failure(
                AppointmentResult.VALIDATION_ERROR, validation_errors=errors
            )

        try:
            # The doctor of an appointment never changes, so it can be read
            # before taking the doctor lock
            with self.uow.begin() as store:
                current = store.appointments.get_by_id(appointment_id)
            if current is None:
                return ServiceResult.failure(AppointmentResult.APPOINTMENT_NOT_FOUND)

            slot = TimeSlot(current.doctor_id, request.start, request.duration_minutes)
            now = self.clock()
            rejected = self._check_slot_timing(slot, now)
            if rejected:
                return rejected

            with self.uow.begin(
                appointment_lock(appointment_id), doctor_lock(slot.doctor_id)
            ) as store:
                current = store.appointments.get_by_id(appointment_id)
                if current.status not in RESCHEDULABLE:
                    return ServiceResult.failure(
                        AppointmentResult.INVALID_STATUS_TRANSITION
                    )
                if self.conflict_detector.has_conflict(
                    store.appointments, slot, exclude_appointment_id=appointment_id
                ):
                    return ServiceResult.failure(AppointmentResult.DOCTOR_BUSY)
                store.appointments.update_slot(
                    appointment_id, slot, request.updated_by, now
                )
                updated = store.appointments.get_by_id(appointment_id)
        except InfrastructureError:
            logger.error(
                "Reschedule failed",
                exc_info=True,
                extra={"context": {"appointment_id": appointment_id}},
            )
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)

        logger.info(
            "Appointment rescheduled",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "start": slot.start.isoformat(),
                    "duration_minutes": slot.duration_minutes,
                }
            },
        )
        return ServiceResult.success(AppointmentResult.SUCCESS, updated)

    def _check_slot_timing(
        self, slot: TimeSlot, now: datetime
    ) -> Optional[ServiceResult[Appointment]]:
        if slot.start <= now:
            return ServiceResult.failure(AppointmentResult.PAST_DATE_NOT_ALLOWED)
        if not config.WORKING_HOURS_START <= slot.start.hour < config.WORKING_HOURS_END:
            return ServiceResult.failure(AppointmentResult.OUTSIDE_WORKING_HOURS)
        return None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(
        self,
        appointment_id: int,
        new_status: AppointmentStatus,
        updated_by: Optional[str] = None,
    ) -> ServiceResult[Appointment]:
        """Move an appointment along the status graph."""
        new_status = AppointmentStatus(new_status)
        try:
            with self.uow.begin(appointment_lock(appointment_id)) as store:
                appointment = store.appointments.get_by_id(appointment_id)
                if appointment is None:
                    return ServiceResult.failure(
                        AppointmentResult.APPOINTMENT_NOT_FOUND
                    )
                if appointment.status == new_status:
                    return ServiceResult.failure(AppointmentResult.STATUS_ALREADY_SET)
                if not appointment.status.can_transition_to(new_status):
                    logger.info(
                        "Illegal appointment status transition",
                        extra={
                            "context": {
                                "appointment_id": appointment_id,
                                "from": appointment.status.value,
                                "to": new_status.value,
                            }
                        },
                    )
                    return ServiceResult.failure(
                        AppointmentResult.INVALID_STATUS_TRANSITION
                    )
                store.appointments.update_status(
                    appointment_id, new_status, updated_by, self.clock()
                )
                updated = store.appointments.get_by_id(appointment_id)
        except InfrastructureError:
            logger.error(
                "Appointment status update failed",
                exc_info=True,
                extra={"context": {"appointment_id": appointment_id}},
            )
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)

        logger.info(
            "Appointment status changed",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "status": new_status.value,
                    "updated_by": updated_by,
                }
            },
        )
        return ServiceResult.success(AppointmentResult.SUCCESS, updated)

    def cancel(
        self, appointment_id: int, updated_by: Optional[str] = None
    ) -> ServiceResult[Appointment]:
        return self.set_status(appointment_id, AppointmentStatus.CANCELED, updated_by)

    def confirm(
        self, appointment_id: int, updated_by: Optional[str] = None
    ) -> ServiceResult[Appointment]:
        return self.set_status(appointment_id, AppointmentStatus.CONFIRMED, updated_by)

    def complete(
        self, appointment_id: int, updated_by: Optional[str] = None
    ) -> ServiceResult[Appointment]:
        return self.set_status(appointment_id, AppointmentStatus.COMPLETED, updated_by)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_slot_available(
        self, doctor_id: int, start: datetime, duration_minutes: int
    ) -> ServiceResult[bool]:
        if duration_minutes <= 0:
            return ServiceResult.failure(
                AppointmentResult.VALIDATION_ERROR,
                validation_errors=["duration_minutes must be positive"],
            )
        slot = TimeSlot(doctor_id, start, duration_minutes)
        try:
            with self.uow.begin() as store:
                if not store.people.doctor_exists(doctor_id):
                    return ServiceResult.failure(AppointmentResult.DOCTOR_NOT_FOUND)
                busy = self.conflict_detector.has_conflict(store.appointments, slot)
        except InfrastructureError:
            logger.error("Slot availability check failed", exc_info=True)
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)
        return ServiceResult.success(AppointmentResult.SUCCESS, not busy)

    def get_appointment(self, appointment_id: int) -> ServiceResult[Appointment]:
        try:
            with self.uow.begin() as store:
                appointment = store.appointments.get_by_id(appointment_id)
        except InfrastructureError:
            logger.error("Appointment lookup failed", exc_info=True)
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)
        if appointment is None:
            return ServiceResult.failure(AppointmentResult.APPOINTMENT_NOT_FOUND)
        return ServiceResult.success(AppointmentResult.SUCCESS, appointment)

    def get_appointments_by_date_range(
        self, start: datetime, end: datetime
    ) -> ServiceResult[List[Appointment]]:
        """Get appointments starting within ``[start, end)``."""
        if start > end:
            return ServiceResult.failure(
                AppointmentResult.VALIDATION_ERROR,
                validation_errors=["start must not be after end"],
            )
        try:
            with self.uow.begin() as store:
                appointments = store.appointments.get_by_date_range(start, end)
        except InfrastructureError:
            logger.error("Appointment listing failed", exc_info=True)
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)
        return self._listing(appointments)

    def get_doctor_schedule(
        self, doctor_id: int, day: date
    ) -> ServiceResult[List[Appointment]]:
        """Get all of a doctor's appointments for a specific day."""
        start_of_day = datetime.combine(day, time.min)
        end_of_day = start_of_day + timedelta(days=1)
        try:
            with self.uow.begin() as store:
                if not store.people.doctor_exists(doctor_id):
                    return ServiceResult.failure(AppointmentResult.DOCTOR_NOT_FOUND)
                appointments = store.appointments.get_by_doctor_and_range(
                    doctor_id, start_of_day, end_of_day
                )
        except InfrastructureError:
            logger.error("Doctor schedule lookup failed", exc_info=True)
            return ServiceResult.failure(AppointmentResult.OPERATION_FAILED)
        return self._listing(appointments)

    @staticmethod
    def _listing(appointments: List[Appointment]) -> ServiceResult[List[Appointment]]:
        if not appointments:
            return ServiceResult.success(AppointmentResult.NO_DATA, [])
        return ServiceResult.success(AppointmentResult.SUCCESS, appointments)
