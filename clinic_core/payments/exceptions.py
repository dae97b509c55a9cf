# clinic_core/payments/exceptions.py
from __future__ import annotations

from rest_framework.exceptions import NotFound, ValidationError

from clinic_core.common.api.exceptions import ConflictError


# Input errors (400)

class InvalidAmount(ValidationError):
    default_detail = "Amount must be greater than zero."
    default_code = "invalid_amount"


# Not found (404)

class PatientNotFound(NotFound):
    default_detail = "Patient not found."
    default_code = "patient_not_found"


class SessionNotFound(NotFound):
    default_detail = "Session not found."
    default_code = "session_not_found"


class PaymentNotFound(NotFound):
    default_detail = "Payment not found."
    default_code = "payment_not_found"


# Ledger rule violations (409)

class SessionMismatch(ConflictError):
    default_detail = "Session does not belong to the payment's patient."
    default_code = "session_mismatch"


class AllocationExceedsPending(ConflictError):
    default_detail = "Allocation exceeds the session's pending amount."
    default_code = "allocation_exceeds_pending"


class AllocationExceedsPaymentAmount(ConflictError):
    default_detail = "Total allocated exceeds the payment amount."
    default_code = "allocation_exceeds_payment_amount"


class AllocationExceedsCredit(ConflictError):
    default_detail = "Total allocated exceeds the payment's available credit."
    default_code = "allocation_exceeds_credit"


class NoAvailableCredit(ConflictError):
    default_detail = "Payment has no available credit."
    default_code = "no_available_credit"


class DuplicateAllocation(ConflictError):
    default_detail = "Payment is already allocated to this session."
    default_code = "duplicate_allocation"


class PaymentNotConfirmed(ConflictError):
    default_detail = "Only confirmed payments can be changed."
    default_code = "payment_not_confirmed"


class RefundExceedsAvailable(ConflictError):
    default_detail = "Refund exceeds the payment's refundable amount."
    default_code = "refund_exceeds_available"


class PaymentNotVoidable(ConflictError):
    default_detail = "Only confirmed or pending payments can be voided."
    default_code = "payment_not_voidable"
