"""
Ledger Errors

Every failure the ledger core can report. Services raise these, the API
layer maps them to HTTP responses; none of them is retried.
"""
from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger failures"""
    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code}


class ValidationError(LedgerError):
    """Malformed or out-of-range input"""
    code = "validation_error"
    status_code = 422


class NotFoundError(LedgerError):
    code = "not_found"
    status_code = 404


class InsufficientFundsError(LedgerError):
    """Operation would drive a balance below zero"""
    code = "insufficient_funds"
    status_code = 409

    def __init__(self, message: str, available: Optional[Decimal] = None,
                 requested: Optional[Decimal] = None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class DestinationNotAcceptingError(LedgerError):
    code = "destination_not_accepting"
    status_code = 409


class SameAccountError(LedgerError):
    code = "same_account"
    status_code = 400


class NonZeroBalanceError(LedgerError):
    """Delete attempted on an account that still holds money"""
    code = "non_zero_balance"
    status_code = 409

    def __init__(self, message: str, balance: Optional[Decimal] = None):
        super().__init__(message)
        self.balance = balance


class LinkedToOrderError(LedgerError):
    """Edit attempted on a transaction mirrored from an invoice"""
    code = "linked_to_order"
    status_code = 409
