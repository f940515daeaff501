"""
models.py - Data model definitions

This file defines the Transaction dataclass stored in the ledger and the
CandidateLine used by the receipt review preview.
Transactions are serialized to/from simple dicts so they can be persisted as
JSON in the local slot store or sent to the REST backend.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
import datetime


PAYE = "PAYE"
VAT = "VAT"
CONSUMPTION = "Consumption"

TRANSACTION_TYPES = (PAYE, VAT, CONSUMPTION)

DEFAULT_DETAILS = "Manual Entry"


def today_iso() -> str:
    return datetime.date.today().isoformat()


def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def validate_type(tx_type: str) -> str:
    if tx_type not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type {tx_type!r}; expected one of {TRANSACTION_TYPES}")
    return tx_type


def validate_amount(amount) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValueError(f"Amount must be a number, got {amount!r}")
    if value != value or value < 0:
        raise ValueError(f"Amount must be >= 0, got {amount!r}")
    return round(value, 2)


@dataclass
class Transaction:
    """
    Represents a single confirmed tax transaction.

    Fields:
      - id: opaque unique id assigned by the ledger (never reused)
      - date: ISO date string "YYYY-MM-DD"; defaults to today
      - type: one of PAYE, VAT, Consumption
      - amount: non-negative amount in naira, 2 decimal places
      - details: free-text description
      - created_at: ISO timestamp set once at creation
    """
    id: str
    type: str
    amount: float
    details: str = DEFAULT_DETAILS
    date: str = field(default_factory=today_iso)
    created_at: str = field(default_factory=now_iso)

    def __post_init__(self):
        validate_type(self.type)
        self.amount = validate_amount(self.amount)
        self.details = (self.details or "").strip() or DEFAULT_DETAILS
        self.date = self.date or today_iso()

    def to_dict(self) -> Dict:
        """
        Convert to the JSON shape shared by the local store and the REST backend.
        """
        return {
            "id": self.id,
            "date": self.date,
            "type": self.type,
            "amount": self.amount,
            "details": self.details,
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(d: Dict) -> "Transaction":
        """
        Construct a Transaction from a dict (inverse of to_dict).
        Uses defaults for missing keys so older/corrupted slots are tolerated;
        the backend may send ``_id`` instead of ``id``.
        """
        return Transaction(
            id=str(d.get("id") or d.get("_id") or ""),
            type=d.get("type", ""),
            amount=d.get("amount", 0.0),
            details=d.get("details", "") or "",
            date=str(d.get("date", "") or "")[:10],
            created_at=d.get("createdAt", "") or now_iso(),
        )


@dataclass
class CandidateLine:
    """An unconfirmed, user-editable amount found on a receipt."""
    id: str
    type: str
    amount: float
    details: str
    selected: bool = True
    source: str = ""
    base_amount: Optional[float] = None

    def __post_init__(self):
        if self.base_amount is None:
            self.base_amount = self.amount
