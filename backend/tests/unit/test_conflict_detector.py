from unittest.mock import Mock

import pytest

from clinic.domain.entities import AppointmentStatus, TimeSlot
from clinic.services.conflict_detector import ConflictDetector
from tests.factories.domain_factories import at, make_appointment
from tests.factories.repository_factories import AppointmentRepositoryFactory


@pytest.fixture
def detector() -> ConflictDetector:
    return ConflictDetector()


def reader_with(*appointments) -> Mock:
    return AppointmentRepositoryFactory.create_mock_reader(list(appointments))


@pytest.mark.unit
@pytest.mark.appointment
class TestConflictDetector:
    def test_no_existing_appointments(self, detector):
        reader = reader_with()
        assert not detector.has_conflict(reader, TimeSlot(1, at(10), 30))
        reader.find_overlapping.assert_called_once_with(1, at(10), at(10, 30), None)

    def test_overlapping_appointment_conflicts(self, detector):
        existing = make_appointment(id=7, start=at(10), duration_minutes=30)
        reader = reader_with(existing)

        conflicts = detector.find_conflicts(reader, TimeSlot(1, at(10, 15), 30))

        assert [a.id for a in conflicts] == [7]

    def test_touching_appointment_is_free(self, detector):
        reader = reader_with(make_appointment(start=at(10), duration_minutes=30))
        assert not detector.has_conflict(reader, TimeSlot(1, at(10, 30), 30))

    def test_canceled_appointment_never_conflicts(self, detector):
        reader = reader_with(
            make_appointment(start=at(10), status=AppointmentStatus.CANCELED)
        )
        assert not detector.has_conflict(reader, TimeSlot(1, at(10), 30))

    def test_excluded_appointment_is_ignored(self, detector):
        reader = reader_with(make_appointment(id=3, start=at(10)))

        assert not detector.has_conflict(
            reader, TimeSlot(1, at(10, 10), 30), exclude_appointment_id=3
        )
        reader.find_overlapping.assert_called_once_with(1, at(10, 10), at(10, 40), 3)

    def test_other_doctor_is_ignored(self, detector):
        reader = reader_with(make_appointment(doctor_id=2, start=at(10)))
        assert not detector.has_conflict(reader, TimeSlot(1, at(10), 30))

    def test_completed_appointment_still_occupies_slot(self, detector):
        reader = reader_with(
            make_appointment(start=at(10), status=AppointmentStatus.COMPLETED)
        )
        assert detector.has_conflict(reader, TimeSlot(1, at(10, 20), 10))
