"""Ingest utilities shared by CLI commands and workflows.

Loads bank-feed and ledger CSV exports into a :class:`~ledger_recon.store.LedgerStore`.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

from ..models import Side, TransactionRecord
from ..store import LedgerStore
from .adapters.records_csv import read_records


def load_records_csv(csv_path: str | PathLike[str], *, side: Side) -> list[TransactionRecord]:
    """Read a bank-feed or ledger CSV and return its records in file order."""

    p = Path(csv_path)
    with p.open(encoding="utf-8-sig", newline="") as f:
        return read_records(f, side=side, source=str(p))


def load_store_from_csv(
    bank_csv: str | PathLike[str], ledger_csv: str | PathLike[str]
) -> LedgerStore:
    return LedgerStore(
        bank_records=load_records_csv(bank_csv, side=Side.BANK),
        ledger_records=load_records_csv(ledger_csv, side=Side.LEDGER),
    )


__all__ = ["load_records_csv", "load_store_from_csv"]
