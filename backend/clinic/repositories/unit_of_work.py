"""
SQLAlchemy unit of work.

One ``begin()`` block is one transaction: the repositories in the yielded
``ClinicStore`` share a single session, the block commits on normal exit and
rolls back on any exception. Lock keys name the contended resource
(``doctor:<id>``, ``invoice:<id>``) and are held until after commit.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from clinic.core.exceptions import InfrastructureError
from clinic.core.locks import KeyedLockRegistry, default_registry
from clinic.db.session import get_sessionmaker
from clinic.domain.interfaces import ClinicStore, IUnitOfWork
from clinic.repositories.appointment_repo import AppointmentRepository
from clinic.repositories.invoice_item_repo import InvoiceItemRepository
from clinic.repositories.invoice_repo import InvoiceRepository
from clinic.repositories.payment_repo import PaymentRepository
from clinic.repositories.people_repo import PeopleRepository

logger = logging.getLogger(__name__)


def build_store(session: Session) -> ClinicStore:
    return ClinicStore(
        appointments=AppointmentRepository(session),
        invoices=InvoiceRepository(session),
        items=InvoiceItemRepository(session),
        payments=PaymentRepository(session),
        people=PeopleRepository(session),
    )


class SqlAlchemyUnitOfWork(IUnitOfWork):
    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        locks: Optional[KeyedLockRegistry] = None,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks or default_registry

    @property
    def session_factory(self) -> sessionmaker:
        return self._session_factory or get_sessionmaker()

    @contextmanager
    def begin(self, *lock_keys: str) -> Iterator[ClinicStore]:
        with self._locks.hold(*lock_keys):
            session = self.session_factory()
            try:
                self._acquire_advisory_locks(session, lock_keys)
                yield build_store(session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(
                    "Unit of work rolled back after storage failure",
                    extra={"context": {"lock_keys": list(lock_keys), "error": str(exc)}},
                )
                raise InfrastructureError(str(exc)) from exc
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    @staticmethod
    def _acquire_advisory_locks(session: Session, lock_keys: tuple[str, ...]) -> None:
        """Serialize across processes on PostgreSQL; released at commit/rollback."""
        if not lock_keys or session.get_bind().dialect.name != "postgresql":
            return
        for key in sorted(set(lock_keys)):
            session.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))
