# Overview: Payment status rule and payment method vocabulary shared by the ledger and the builder.

"""
Payment rules

The sale's payment_status is a pure function of (amount_paid, final_amount):
it is recomputed from scratch on every mutation, never adjusted in place.

STATUS RULE (first match wins):
- PAID:    amount_paid >= final_amount and final_amount > 0
- PARTIAL: 0 < amount_paid < final_amount
- UNPAID:  everything else

A zero (or negative) final amount is never "Paid", even with payments
recorded. Overpayment is accepted and simply reads as Paid.
"""

from __future__ import annotations

from ..errors import InvalidArgument


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_UNPAID = "Unpaid"
PAYMENT_STATUS_PARTIAL = "Partially Paid"
PAYMENT_STATUS_PAID = "Paid"

PAYMENT_STATUSES = [
    PAYMENT_STATUS_UNPAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
]


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CREDIT_CARD = "credit_card"
METHOD_OTHER = "other"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_BANK_TRANSFER,
    METHOD_CREDIT_CARD,
    METHOD_OTHER,
]

DEFAULT_PAYMENT_METHOD = METHOD_CASH


def derive_payment_status(amount_paid_cents: int, final_amount_cents: int) -> str:
    if amount_paid_cents >= final_amount_cents and final_amount_cents > 0:
        return PAYMENT_STATUS_PAID
    if 0 < amount_paid_cents < final_amount_cents:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def validate_payment_method(method: str | None) -> str:
    if method is None or str(method).strip() == "":
        return DEFAULT_PAYMENT_METHOD
    method = str(method).strip().lower()
    if method not in VALID_PAYMENT_METHODS:
        raise InvalidArgument(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}"
        )
    return method


def validate_payment_status(status: str | None) -> str | None:
    """Used by list filters; None means no filter."""
    if status is None or status == "":
        return None
    if status not in PAYMENT_STATUSES:
        raise InvalidArgument(f"Invalid payment status: {status}. Must be one of {PAYMENT_STATUSES}")
    return status
