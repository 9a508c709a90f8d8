"""Persistence integration for reconciliation sessions.

Functions here write and read the ``recon_transactions`` table owned by
:mod:`ledger_recon.db`. They take a session from the caller (usually
``db.client.session_scope``) and never commit; transaction boundaries belong
to the caller.

Scope:
- Upsert both collections (records keyed by ``(side, record_id)``).
- Write link state for confirmed pairs.
- Rebuild a :class:`~ledger_recon.store.LedgerStore` from stored rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .db.models import ReconTransaction
from .logging_setup import get_logger
from .models import Side, TransactionKind, TransactionRecord
from .store import LedgerStore

_logger = get_logger("ledger_recon.persistence")

_SIDE_VALUES: dict[Side, str] = {Side.BANK: "bank", Side.LEDGER: "ledger"}


def _upsert_side(
    session: Session,
    *,
    side: Side,
    records: Iterable[TransactionRecord],
    currency_code: str,
) -> tuple[int, int]:
    side_value = _SIDE_VALUES[side]
    items = list(records)
    if not items:
        return 0, 0

    existing: dict[str, ReconTransaction] = {
        row.record_id: row
        for row in session.scalars(
            select(ReconTransaction).where(
                (ReconTransaction.side == side_value)
                & (ReconTransaction.record_id.in_([r.id for r in items]))
            )
        )
    }

    inserted = updated = 0
    for rec in items:
        row = existing.get(rec.id)
        if row is None:
            session.add(
                ReconTransaction(
                    side=side_value,
                    record_id=rec.id,
                    date=rec.date,
                    description=rec.description,
                    amount=rec.amount,
                    kind=rec.kind.value,
                    category=rec.category,
                    linked_counterpart_id=rec.linked_counterpart_id,
                    currency_code=currency_code,
                )
            )
            inserted += 1
            continue
        # Source fields are immutable once stored; only link state and the
        # ledger category move forward.
        row.category = rec.category
        row.linked_counterpart_id = rec.linked_counterpart_id
        row.updated_at = func.now()
        updated += 1
    session.flush()
    return inserted, updated


def save_store(session: Session, store: LedgerStore, *, currency_code: str = "SAR") -> int:
    """Insert new records and update link/category fields of existing ones.

    Returns the number of rows written (inserted plus updated).
    """

    bank_ins, bank_upd = _upsert_side(
        session, side=Side.BANK, records=store.bank_records(), currency_code=currency_code
    )
    ledger_ins, ledger_upd = _upsert_side(
        session, side=Side.LEDGER, records=store.ledger_records(), currency_code=currency_code
    )
    _logger.info(
        "persist:save_store inserted=%d updated=%d",
        bank_ins + ledger_ins,
        bank_upd + ledger_upd,
    )
    return bank_ins + bank_upd + ledger_ins + ledger_upd


def save_links(session: Session, pairs: Mapping[str, str]) -> int:
    """Write link state for ``bank_id -> ledger_id`` pairs on both rows.

    Rows that do not exist are left alone; the number of updated rows is
    returned so callers can detect a store that was never saved.
    """

    now = func.now()
    count = 0
    for bank_id, ledger_id in pairs.items():
        for side_value, record_id, counterpart in (
            ("bank", bank_id, ledger_id),
            ("ledger", ledger_id, bank_id),
        ):
            res = session.execute(
                update(ReconTransaction)
                .where(
                    (ReconTransaction.side == side_value)
                    & (ReconTransaction.record_id == record_id)
                )
                .values(linked_counterpart_id=counterpart, updated_at=now)
            )
            count += res.rowcount or 0
    _logger.info("persist:save_links pairs=%d rows=%d", len(pairs), count)
    return count


def _to_record(row: ReconTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.record_id,
        date=row.date,
        description=row.description or "",
        amount=row.amount,
        kind=TransactionKind(row.kind),
        category=row.category,
        linked_counterpart_id=row.linked_counterpart_id,
    )


def load_store(session: Session) -> LedgerStore:
    """Rebuild a store from every stored row, in insertion order."""

    rows = session.scalars(select(ReconTransaction).order_by(ReconTransaction.id)).all()
    bank = [_to_record(r) for r in rows if r.side == "bank"]
    ledger = [_to_record(r) for r in rows if r.side == "ledger"]
    _logger.info("persist:load_store bank=%d ledger=%d", len(bank), len(ledger))
    return LedgerStore(bank_records=bank, ledger_records=ledger)


__all__ = ["save_store", "save_links", "load_store"]
