"""
Custom exceptions for the clinic engine.

Expected business outcomes (doctor busy, invoice closed, overpayment...) are
returned as ``ServiceResult`` values and never raised. Exceptions are kept for
infrastructure faults: the storage layer failed, a constraint fired, or the
transaction could not be committed.
"""


class InfrastructureError(Exception):
    """Raised when the store fails inside a unit of work.

    The transaction has already been rolled back when this is raised.
    """

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class ConstraintViolationError(InfrastructureError):
    """A database constraint (unique, foreign key, check) rejected a write."""

    pass
