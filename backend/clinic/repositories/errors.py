from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic.core.exceptions import ConstraintViolationError


def flush_or_raise(session: Session, operation: str) -> None:
    """Flush pending writes, translating constraint failures.

    The caller's unit of work rolls the transaction back when this raises.
    """
    try:
        session.flush()
    except IntegrityError as exc:
        raise ConstraintViolationError(
            f"{operation} violated a database constraint", operation=operation
        ) from exc
