"""In-memory holder of the bank feed and the internal ledger.

The store owns both collections and is the only place records are replaced.
Records are immutable; linking swaps in updated copies of *both* sides in one
step under the store lock, so no reader ever observes a half-linked pair.
"""

from __future__ import annotations

import threading
from collections.abc import Collection, Iterable
from dataclasses import replace

from .errors import RecordAlreadyLinked, RecordNotFound
from .logging_setup import get_logger
from .models import Side, StoreCounts, TransactionRecord

_logger = get_logger("ledger_recon.store")


class LedgerStore:
    """Bank-feed and ledger collections, keyed by record id in insertion order."""

    def __init__(
        self,
        bank_records: Iterable[TransactionRecord] = (),
        ledger_records: Iterable[TransactionRecord] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._bank: dict[str, TransactionRecord] = {}
        self._ledger: dict[str, TransactionRecord] = {}
        self.add_bank_records(bank_records)
        self.add_ledger_records(ledger_records)

    # ---- Ingestion -----------------------------------------------------------

    def add_bank_records(self, records: Iterable[TransactionRecord]) -> None:
        """Append bank-feed records. Bank records never carry a category."""

        items = list(records)
        for rec in items:
            if rec.category is not None:
                raise ValueError(f"bank record {rec.id!r} must not carry a category")
        self._append(Side.BANK, items)

    def add_ledger_records(self, records: Iterable[TransactionRecord]) -> None:
        self._append(Side.LEDGER, list(records))

    def _append(self, side: Side, items: list[TransactionRecord]) -> None:
        with self._lock:
            target = self._collection(side)
            seen: set[str] = set()
            for rec in items:
                if rec.id in target or rec.id in seen:
                    raise ValueError(f"duplicate {side.value.lower()} record id: {rec.id!r}")
                seen.add(rec.id)
            # Validate the whole batch before appending any of it.
            for rec in items:
                target[rec.id] = rec

    # ---- Reads ---------------------------------------------------------------

    def _collection(self, side: Side) -> dict[str, TransactionRecord]:
        return self._bank if side is Side.BANK else self._ledger

    def get(self, side: Side, record_id: str) -> TransactionRecord:
        with self._lock:
            rec = self._collection(side).get(record_id)
        if rec is None:
            raise RecordNotFound(side, record_id)
        return rec

    def find(self, side: Side, record_id: str) -> TransactionRecord | None:
        with self._lock:
            return self._collection(side).get(record_id)

    def bank_records(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._bank.values())

    def ledger_records(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._ledger.values())

    def unlinked_bank(self, exclude: Collection[str] = ()) -> list[TransactionRecord]:
        """Bank records with no counterpart whose ids are not in ``exclude``."""

        return self._unlinked(Side.BANK, exclude)

    def unlinked_ledger(self, exclude: Collection[str] = ()) -> list[TransactionRecord]:
        """Ledger records with no counterpart whose ids are not in ``exclude``."""

        return self._unlinked(Side.LEDGER, exclude)

    def _unlinked(self, side: Side, exclude: Collection[str]) -> list[TransactionRecord]:
        with self._lock:
            return [
                rec
                for rec in self._collection(side).values()
                if not rec.is_linked and rec.id not in exclude
            ]

    def linked_pairs(self) -> dict[str, str]:
        """Map of bank id to ledger id for every reconciled pair."""

        with self._lock:
            return {
                rec.id: rec.linked_counterpart_id
                for rec in self._bank.values()
                if rec.linked_counterpart_id is not None
            }

    def counts(self) -> StoreCounts:
        with self._lock:
            return StoreCounts(
                bank=len(self._bank),
                ledger=len(self._ledger),
                linked_pairs=sum(1 for rec in self._bank.values() if rec.is_linked),
            )

    # ---- Mutation ------------------------------------------------------------

    def link(self, bank_id: str, ledger_id: str) -> tuple[TransactionRecord, TransactionRecord]:
        """Link a bank record and a ledger record to each other.

        Both ids must resolve and neither record may already be linked to a
        different counterpart; otherwise nothing changes and
        :class:`RecordNotFound` / :class:`RecordAlreadyLinked` is raised.
        Linking an already-linked pair again is a no-op. Returns the updated
        ``(bank, ledger)`` records.
        """

        with self._lock:
            bank = self._bank.get(bank_id)
            if bank is None:
                raise RecordNotFound(Side.BANK, bank_id)
            ledger = self._ledger.get(ledger_id)
            if ledger is None:
                raise RecordNotFound(Side.LEDGER, ledger_id)

            if bank.linked_counterpart_id not in (None, ledger_id):
                raise RecordAlreadyLinked(Side.BANK, bank_id, bank.linked_counterpart_id)
            if ledger.linked_counterpart_id not in (None, bank_id):
                raise RecordAlreadyLinked(Side.LEDGER, ledger_id, ledger.linked_counterpart_id)

            new_bank = replace(bank, linked_counterpart_id=ledger_id)
            new_ledger = replace(ledger, linked_counterpart_id=bank_id)
            self._bank[bank_id] = new_bank
            self._ledger[ledger_id] = new_ledger

        _logger.info("store:link bank_id=%s ledger_id=%s", bank_id, ledger_id)
        return new_bank, new_ledger


__all__ = ["LedgerStore"]
