"""Built-in demo data: a short bank feed and the matching ledger entries."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from .models import TransactionKind, TransactionRecord
from .store import LedgerStore

_D = TransactionKind.DEBIT
_C = TransactionKind.CREDIT


def bank_feed() -> list[TransactionRecord]:
    return [
        TransactionRecord("b1", date(2024, 5, 20), "UBER TRIP HELP.UBER.COM", Decimal("-45.00"), _D),
        TransactionRecord("b2", date(2024, 5, 21), "SACO HARDWARE RIYADH", Decimal("-1250.00"), _D),
        TransactionRecord("b3", date(2024, 5, 22), "TRANSFER IN FROM PAUL", Decimal("15000.00"), _C),
        TransactionRecord("b4", date(2024, 5, 23), "ALMARAI CO.", Decimal("-230.50"), _D),
        TransactionRecord("b5", date(2024, 5, 24), "STC PAY *TOPUP", Decimal("-500.00"), _D),
    ]


def ledger_entries() -> list[TransactionRecord]:
    return [
        TransactionRecord(
            "l1", date(2024, 5, 20), "Site Visit Transport", Decimal("-45.00"), _D, "Transport"
        ),
        TransactionRecord(
            "l2", date(2024, 5, 22), "Equipment Purchase", Decimal("-1250.00"), _D, "Assets"
        ),
        TransactionRecord(
            "l3", date(2024, 5, 22), "Project A Advance", Decimal("15000.00"), _C, "Income"
        ),
        TransactionRecord("l4", date(2024, 5, 25), "Staff Lunch", Decimal("-150.00"), _D, "Meals"),
    ]


def demo_store() -> LedgerStore:
    return LedgerStore(bank_records=bank_feed(), ledger_records=ledger_entries())


__all__ = ["bank_feed", "ledger_entries", "demo_store"]
