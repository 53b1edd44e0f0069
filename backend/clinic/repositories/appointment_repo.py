"""
Appointment repository implementation following SOLID principles.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from clinic.db.base import Appointment as DbAppointment
from clinic.domain.entities import Appointment as DomainAppointment
from clinic.domain.entities import AppointmentStatus, TimeSlot
from clinic.domain.interfaces import IAppointmentRepository
from clinic.repositories.errors import flush_or_raise


class AppointmentRepository(IAppointmentRepository):
    """Repository for Appointment persistence operations."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_by_id(self, appointment_id: int) -> Optional[DomainAppointment]:
        """Get appointment by ID."""
        db_appointment = self.db.get(DbAppointment, appointment_id)
        return self._to_domain(db_appointment) if db_appointment else None

    def find_overlapping(
        self,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[DomainAppointment]:
        """Live appointments of the doctor intersecting the half-open range."""
        stmt = select(DbAppointment).where(
            DbAppointment.doctor_id == doctor_id,
            DbAppointment.status != AppointmentStatus.CANCELED.value,
            DbAppointment.start_at < end,
            DbAppointment.end_at > start,
        )
        if exclude_appointment_id is not None:
            stmt = stmt.where(DbAppointment.id != exclude_appointment_id)
        rows = self.db.scalars(stmt.order_by(DbAppointment.start_at)).all()
        return [self._to_domain(row) for row in rows]

    def get_by_doctor_and_range(
        self, doctor_id: int, start: datetime, end: datetime
    ) -> List[DomainAppointment]:
        stmt = (
            select(DbAppointment)
            .where(
                DbAppointment.doctor_id == doctor_id,
                DbAppointment.start_at >= start,
                DbAppointment.start_at < end,
            )
            .order_by(DbAppointment.start_at)
        )
        return [self._to_domain(row) for row in self.db.scalars(stmt).all()]

    def get_by_date_range(
        self, start: datetime, end: datetime
    ) -> List[DomainAppointment]:
        """Get appointments in date range."""
        stmt = (
            select(DbAppointment)
            .where(DbAppointment.start_at >= start, DbAppointment.start_at < end)
            .order_by(DbAppointment.start_at, DbAppointment.doctor_id)
        )
        return [self._to_domain(row) for row in self.db.scalars(stmt).all()]

    def insert(self, appointment: DomainAppointment) -> DomainAppointment:
        """Create a new appointment."""
        db_appointment = DbAppointment(
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            start_at=appointment.start,
            end_at=appointment.end,
            duration_minutes=appointment.slot.duration_minutes,
            status=appointment.status.value,
            reason=appointment.reason,
            created_by=appointment.created_by,
            created_at=appointment.created_at,
        )
        self.db.add(db_appointment)
        flush_or_raise(self.db, "insert_appointment")
        return self._to_domain(db_appointment)

    def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
        updated_by: Optional[str],
        updated_at: datetime,
    ) -> bool:
        result = self.db.execute(
            update(DbAppointment)
            .where(DbAppointment.id == appointment_id)
            .values(
                status=status.value,
                last_updated_by=updated_by,
                last_updated_at=updated_at,
            )
        )
        return result.rowcount > 0

    def update_slot(
        self,
        appointment_id: int,
        slot: TimeSlot,
        updated_by: Optional[str],
        updated_at: datetime,
    ) -> bool:
        result = self.db.execute(
            update(DbAppointment)
            .where(DbAppointment.id == appointment_id)
            .values(
                doctor_id=slot.doctor_id,
                start_at=slot.start,
                end_at=slot.end,
                duration_minutes=slot.duration_minutes,
                last_updated_by=updated_by,
                last_updated_at=updated_at,
            )
        )
        return result.rowcount > 0

    def _to_domain(self, db_appointment: DbAppointment) -> DomainAppointment:
        """Convert database model to domain entity."""
        return DomainAppointment(
            id=db_appointment.id,
            patient_id=db_appointment.patient_id,
            slot=TimeSlot(
                doctor_id=db_appointment.doctor_id,
                start=db_appointment.start_at,
                duration_minutes=db_appointment.duration_minutes,
            ),
            reason=db_appointment.reason,
            status=AppointmentStatus(db_appointment.status),
            created_by=db_appointment.created_by,
            created_at=db_appointment.created_at,
            updated_by=db_appointment.last_updated_by,
            updated_at=db_appointment.last_updated_at,
        )
