"""
Credit billing for SchemaForge.

One ledger per account with an atomic reserve/commit/refund primitive.
"""

from ..database.models import BillingPolicy, ReservationStatus, TransactionType
from .ledger import (
    CreditLedger,
    ReservationToken,
    LedgerError,
    InsufficientFunds,
    AccountNotFound,
    ReservationConflict,
)

__all__ = [
    "CreditLedger",
    "ReservationToken",
    "BillingPolicy",
    "ReservationStatus",
    "TransactionType",
    # Errors
    "LedgerError",
    "InsufficientFunds",
    "AccountNotFound",
    "ReservationConflict",
]
