# Overview: Error taxonomy shared by the gateway, the sale ledger and the builder flow.

from __future__ import annotations


class LedgerError(Exception):
    """Base for classified bookkeeping errors; routes translate these to JSON."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFound(LedgerError):
    """A sale, line item, payment, customer or item key does not exist."""
    status_code = 404


class InvalidArgument(LedgerError):
    """Input rejected before any write (negative discount, bad quantity, ...)."""
    status_code = 400


class StorageFailure(LedgerError):
    """The underlying store rejected an operation (I/O, locking, constraint)."""
    status_code = 503


class PartialCascadeFailure(LedgerError):
    """
    A multi-step operation stopped partway.

    details always carries "sale_id" and "stage"; retrying the operation
    (or re-running recompute) converges on the correct end state.
    """
    status_code = 500
