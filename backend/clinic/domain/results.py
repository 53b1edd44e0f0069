"""
Typed operation outcomes.

Every service operation returns a ``ServiceResult`` carrying an outcome code
from one of the enums below. Expected business failures are values here, not
exceptions, so callers can branch on ``result.code`` without ``try`` blocks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorCategory(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVARIANT_VIOLATION = "invariant_violation"
    VALIDATION_ERROR = "validation_error"
    INFRASTRUCTURE_ERROR = "infrastructure_error"


class AppointmentResult(Enum):
    SUCCESS = "Success"
    NO_DATA = "NoData"
    PATIENT_NOT_FOUND = "PatientNotFound"
    DOCTOR_NOT_FOUND = "DoctorNotFound"
    APPOINTMENT_NOT_FOUND = "AppointmentNotFound"
    DOCTOR_BUSY = "DoctorBusy"
    PAST_DATE_NOT_ALLOWED = "PastDateNotAllowed"
    OUTSIDE_WORKING_HOURS = "OutsideWorkingHours"
    STATUS_ALREADY_SET = "StatusAlreadySet"
    INVALID_STATUS_TRANSITION = "InvalidStatusTransition"
    VALIDATION_ERROR = "ValidationError"
    OPERATION_FAILED = "OperationFailed"


class InvoiceResult(Enum):
    SUCCESS = "Success"
    NO_DATA = "NoData"
    CREATED_SUCCESSFULLY = "CreatedSuccessfully"
    UPDATED_SUCCESSFULLY = "UpdatedSuccessfully"
    STATUS_CHANGED_SUCCESSFULLY = "StatusChangedSuccessfully"
    NOT_FOUND = "NotFound"
    PATIENT_NOT_FOUND = "PatientNotFound"
    APPOINTMENT_NOT_FOUND = "AppointmentNotFound"
    APPOINTMENT_ALREADY_HAS_INVOICE = "AppointmentAlreadyHasInvoice"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_TAX_AMOUNT = "InvalidTaxAmount"
    INVALID_DISCOUNT_AMOUNT = "InvalidDiscountAmount"
    DISCOUNT_EXCEEDS_TOTAL = "DiscountExceedsTotal"
    INVALID_DUE_DATE = "InvalidDueDate"
    INVALID_STATUS_TRANSITION = "InvalidStatusTransition"
    INVOICE_ALREADY_PAID = "InvoiceAlreadyPaid"
    INVOICE_CANCELLED = "InvoiceCancelled"
    VALIDATION_ERROR = "ValidationError"
    DATABASE_ERROR = "DatabaseError"


class InvoiceItemResult(Enum):
    SUCCESS = "Success"
    NO_DATA = "NoData"
    ADDED_SUCCESSFULLY = "AddedSuccessfully"
    UPDATED_SUCCESSFULLY = "UpdatedSuccessfully"
    DELETED_SUCCESSFULLY = "DeletedSuccessfully"
    ITEM_NOT_FOUND = "ItemNotFound"
    PARENT_INVOICE_NOT_FOUND = "ParentInvoiceNotFound"
    DESCRIPTION_REQUIRED = "DescriptionRequired"
    INVALID_QUANTITY = "InvalidQuantity"
    INVALID_PRICE = "InvalidPrice"
    INVOICE_ALREADY_CLOSED = "InvoiceAlreadyClosed"
    INVOICE_CANCELLED = "InvoiceCancelled"
    NEGATIVE_BALANCE = "NegativeBalance"
    DISCOUNT_EXCEEDS_TOTAL = "DiscountExceedsTotal"
    VALIDATION_ERROR = "ValidationError"
    DATABASE_ERROR = "DatabaseError"


class PaymentResult(Enum):
    SUCCESS = "Success"
    NO_DATA = "NoData"
    INVOICE_NOT_FOUND = "InvoiceNotFound"
    PAYMENT_NOT_FOUND = "PaymentNotFound"
    INVOICE_ALREADY_PAID = "InvoiceAlreadyPaid"
    INVOICE_CANCELLED = "InvoiceCancelled"
    AMOUNT_EXCEEDS_REMAINING_BALANCE = "AmountExceedsRemainingBalance"
    INVALID_PAYMENT_AMOUNT = "InvalidPaymentAmount"
    TRANSACTION_REF_REQUIRED = "TransactionRefRequired"
    VALIDATION_ERROR = "ValidationError"
    OPERATION_FAILED = "OperationFailed"


ResultCode = Union[AppointmentResult, InvoiceResult, InvoiceItemResult, PaymentResult]

_SUCCESS_VALUES = {
    "Success",
    "NoData",
    "CreatedSuccessfully",
    "UpdatedSuccessfully",
    "StatusChangedSuccessfully",
    "AddedSuccessfully",
    "DeletedSuccessfully",
}

_CATEGORY_BY_VALUE: dict[str, ErrorCategory] = {
    "PatientNotFound": ErrorCategory.NOT_FOUND,
    "DoctorNotFound": ErrorCategory.NOT_FOUND,
    "AppointmentNotFound": ErrorCategory.NOT_FOUND,
    "NotFound": ErrorCategory.NOT_FOUND,
    "ItemNotFound": ErrorCategory.NOT_FOUND,
    "ParentInvoiceNotFound": ErrorCategory.NOT_FOUND,
    "InvoiceNotFound": ErrorCategory.NOT_FOUND,
    "PaymentNotFound": ErrorCategory.NOT_FOUND,
    "DoctorBusy": ErrorCategory.CONFLICT,
    "AppointmentAlreadyHasInvoice": ErrorCategory.CONFLICT,
    "StatusAlreadySet": ErrorCategory.CONFLICT,
    "InvalidStatusTransition": ErrorCategory.CONFLICT,
    "DiscountExceedsTotal": ErrorCategory.INVARIANT_VIOLATION,
    "InvoiceAlreadyPaid": ErrorCategory.INVARIANT_VIOLATION,
    "InvoiceAlreadyClosed": ErrorCategory.INVARIANT_VIOLATION,
    "InvoiceCancelled": ErrorCategory.INVARIANT_VIOLATION,
    "AmountExceedsRemainingBalance": ErrorCategory.INVARIANT_VIOLATION,
    "NegativeBalance": ErrorCategory.INVARIANT_VIOLATION,
    "DatabaseError": ErrorCategory.INFRASTRUCTURE_ERROR,
    "OperationFailed": ErrorCategory.INFRASTRUCTURE_ERROR,
}


def category_of(code: ResultCode) -> ErrorCategory:
    """Map an outcome code to its error category."""
    if code.value in _SUCCESS_VALUES:
        return ErrorCategory.SUCCESS
    return _CATEGORY_BY_VALUE.get(code.value, ErrorCategory.VALIDATION_ERROR)


MESSAGES: dict[ResultCode, str] = {
    # Appointments
    AppointmentResult.SUCCESS: "Operation completed successfully.",
    AppointmentResult.NO_DATA: "No appointments found.",
    AppointmentResult.PATIENT_NOT_FOUND: "The specified patient was not found.",
    AppointmentResult.DOCTOR_NOT_FOUND: "The specified doctor was not found.",
    AppointmentResult.APPOINTMENT_NOT_FOUND: "The specified appointment was not found.",
    AppointmentResult.DOCTOR_BUSY: "The doctor has another appointment during the selected time slot.",
    AppointmentResult.PAST_DATE_NOT_ALLOWED: "Appointments cannot be booked in the past.",
    AppointmentResult.OUTSIDE_WORKING_HOURS: "The appointment time is outside clinic working hours.",
    AppointmentResult.STATUS_ALREADY_SET: "The appointment already has this status.",
    AppointmentResult.INVALID_STATUS_TRANSITION: "The appointment cannot move to the requested status.",
    AppointmentResult.VALIDATION_ERROR: "The appointment data is invalid.",
    AppointmentResult.OPERATION_FAILED: "The operation failed due to a storage error. Please try again.",
    # Invoices
    InvoiceResult.SUCCESS: "Operation completed successfully.",
    InvoiceResult.NO_DATA: "No invoices found.",
    InvoiceResult.CREATED_SUCCESSFULLY: "Invoice created successfully.",
    InvoiceResult.UPDATED_SUCCESSFULLY: "Invoice updated successfully.",
    InvoiceResult.STATUS_CHANGED_SUCCESSFULLY: "Invoice status changed successfully.",
    InvoiceResult.NOT_FOUND: "The specified invoice was not found.",
    InvoiceResult.PATIENT_NOT_FOUND: "The specified patient was not found.",
    InvoiceResult.APPOINTMENT_NOT_FOUND: "The specified appointment was not found.",
    InvoiceResult.APPOINTMENT_ALREADY_HAS_INVOICE: "This appointment already has an invoice.",
    InvoiceResult.INVALID_AMOUNT: "The invoice total must be greater than zero.",
    InvoiceResult.INVALID_TAX_AMOUNT: "The tax amount cannot be negative.",
    InvoiceResult.INVALID_DISCOUNT_AMOUNT: "The discount amount cannot be negative.",
    InvoiceResult.DISCOUNT_EXCEEDS_TOTAL: "The discount cannot exceed the invoice total.",
    InvoiceResult.INVALID_DUE_DATE: "The due date cannot be in the past.",
    InvoiceResult.INVALID_STATUS_TRANSITION: "The invoice cannot move to the requested status.",
    InvoiceResult.INVOICE_ALREADY_PAID: "Cannot modify an invoice that already has payments.",
    InvoiceResult.INVOICE_CANCELLED: "The invoice is cancelled.",
    InvoiceResult.VALIDATION_ERROR: "The invoice data is invalid.",
    InvoiceResult.DATABASE_ERROR: "A database error occurred while processing the invoice.",
    # Invoice items
    InvoiceItemResult.SUCCESS: "Operation completed successfully.",
    InvoiceItemResult.NO_DATA: "The invoice has no items.",
    InvoiceItemResult.ADDED_SUCCESSFULLY: "Item added successfully.",
    InvoiceItemResult.UPDATED_SUCCESSFULLY: "Item updated successfully.",
    InvoiceItemResult.DELETED_SUCCESSFULLY: "Item deleted successfully.",
    InvoiceItemResult.ITEM_NOT_FOUND: "The specified invoice item was not found.",
    InvoiceItemResult.PARENT_INVOICE_NOT_FOUND: "The parent invoice was not found.",
    InvoiceItemResult.DESCRIPTION_REQUIRED: "An item description is required.",
    InvoiceItemResult.INVALID_QUANTITY: "Quantity must be a positive whole number.",
    InvoiceItemResult.INVALID_PRICE: "Unit price cannot be negative.",
    InvoiceItemResult.INVOICE_ALREADY_CLOSED: "Cannot modify items because the invoice is already paid.",
    InvoiceItemResult.INVOICE_CANCELLED: "Cannot modify items because the invoice is cancelled.",
    InvoiceItemResult.NEGATIVE_BALANCE: "The change would make the invoice total lower than the amount already paid.",
    InvoiceItemResult.DISCOUNT_EXCEEDS_TOTAL: "The change would make the invoice total lower than its discount.",
    InvoiceItemResult.VALIDATION_ERROR: "The item data is invalid.",
    InvoiceItemResult.DATABASE_ERROR: "A database error occurred while processing the item.",
    # Payments
    PaymentResult.SUCCESS: "Payment recorded successfully.",
    PaymentResult.NO_DATA: "No payments found.",
    PaymentResult.INVOICE_NOT_FOUND: "The specified invoice was not found.",
    PaymentResult.PAYMENT_NOT_FOUND: "The specified payment was not found.",
    PaymentResult.INVOICE_ALREADY_PAID: "The invoice is already fully paid.",
    PaymentResult.INVOICE_CANCELLED: "Payments cannot be recorded against a cancelled invoice.",
    PaymentResult.AMOUNT_EXCEEDS_REMAINING_BALANCE: "The payment amount exceeds the remaining balance of the invoice.",
    PaymentResult.INVALID_PAYMENT_AMOUNT: "The payment amount must be greater than zero.",
    PaymentResult.TRANSACTION_REF_REQUIRED: "A transaction reference is required for non-cash payments.",
    PaymentResult.VALIDATION_ERROR: "The payment data is invalid.",
    PaymentResult.OPERATION_FAILED: "The operation failed due to a storage error. Please try again.",
}


def message_for(code: ResultCode) -> str:
    return MESSAGES.get(code, code.value)


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a service operation.

    ``data`` is set on success (and on some reads that legitimately return an
    empty list). ``validation_errors`` lists field-level problems when the
    request itself was malformed.
    """

    is_success: bool
    code: ResultCode
    message: str
    data: Optional[T] = None
    validation_errors: list[str] = field(default_factory=list)

    @classmethod
    def success(
        cls, code: ResultCode, data: Optional[T] = None, message: Optional[str] = None
    ) -> "ServiceResult[T]":
        return cls(True, code, message or message_for(code), data)

    @classmethod
    def failure(
        cls,
        code: ResultCode,
        message: Optional[str] = None,
        validation_errors: Optional[list[str]] = None,
    ) -> "ServiceResult[T]":
        return cls(False, code, message or message_for(code), None, validation_errors or [])

    @property
    def category(self) -> ErrorCategory:
        return category_of(self.code)
