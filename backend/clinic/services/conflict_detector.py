"""
Double-booking detection for a doctor's agenda.
"""

from typing import List, Optional

from clinic.domain.entities import Appointment, TimeSlot
from clinic.domain.interfaces import IAppointmentReader


class ConflictDetector:
    """Answers whether a candidate slot collides with a doctor's live appointments.

    Reads go through the repository of the caller's open transaction, so the
    answer reflects the state the caller is about to write against. Policy
    (rejecting the booking) is left to the caller.
    """

    def find_conflicts(
        self,
        appointments: IAppointmentReader,
        candidate: TimeSlot,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Appointment]:
        existing = appointments.find_overlapping(
            candidate.doctor_id,
            candidate.start,
            candidate.end,
            exclude_appointment_id,
        )
        conflicts = []
        for appointment in existing or []:
            if not appointment.is_active:
                continue
            if (
                exclude_appointment_id is not None
                and appointment.id == exclude_appointment_id
            ):
                continue
            if appointment.doctor_id != candidate.doctor_id:
                continue
            # Half-open: an appointment ending at 10:00 leaves 10:00 free
            if appointment.slot.overlaps(candidate):
                conflicts.append(appointment)
        return conflicts

    def has_conflict(
        self,
        appointments: IAppointmentReader,
        candidate: TimeSlot,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(appointments, candidate, exclude_appointment_id)
        )
