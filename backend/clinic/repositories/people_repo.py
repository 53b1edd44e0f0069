from typing import Optional

from sqlalchemy.orm import Session

from clinic.db.base import Doctor as DbDoctor
from clinic.db.base import Patient as DbPatient
from clinic.db.base import Person as DbPerson
from clinic.domain.entities import Doctor, Patient, Person
from clinic.domain.interfaces import IPeopleRepository
from clinic.repositories.errors import flush_or_raise


class PeopleRepository(IPeopleRepository):
    """Patients and doctors, each composed over a shared person record."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        db_patient = self.db.get(DbPatient, patient_id)
        if db_patient is None:
            return None
        return Patient(id=db_patient.id, person=self._person(db_patient.person))

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        db_doctor = self.db.get(DbDoctor, doctor_id)
        if db_doctor is None:
            return None
        return Doctor(
            id=db_doctor.id,
            person=self._person(db_doctor.person),
            specialization=db_doctor.specialization,
        )

    def add_patient(self, patient: Patient) -> Patient:
        db_person = self._add_person(patient.person)
        db_patient = DbPatient(person_id=db_person.id)
        self.db.add(db_patient)
        flush_or_raise(self.db, "insert_patient")
        return Patient(id=db_patient.id, person=self._person(db_person))

    def add_doctor(self, doctor: Doctor) -> Doctor:
        db_person = self._add_person(doctor.person)
        db_doctor = DbDoctor(person_id=db_person.id, specialization=doctor.specialization)
        self.db.add(db_doctor)
        flush_or_raise(self.db, "insert_doctor")
        return Doctor(
            id=db_doctor.id,
            person=self._person(db_person),
            specialization=db_doctor.specialization,
        )

    def _add_person(self, person: Person) -> DbPerson:
        db_person = DbPerson(
            first_name=person.first_name,
            last_name=person.last_name,
            email=person.email,
            phone=person.phone,
        )
        self.db.add(db_person)
        flush_or_raise(self.db, "insert_person")
        return db_person

    @staticmethod
    def _person(db_person: DbPerson) -> Person:
        return Person(
            id=db_person.id,
            first_name=db_person.first_name,
            last_name=db_person.last_name,
            email=db_person.email,
            phone=db_person.phone,
        )
