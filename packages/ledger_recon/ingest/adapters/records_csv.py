"""Adapter mapping bank-feed and ledger CSV exports to transaction records.

CSV header (case-insensitive, surrounding whitespace ignored):
``id, date, description (or desc), amount, type (or kind)`` plus an optional
``category`` column for ledger exports.

Mapping rules:
- ``id``: trimmed string, required.
- ``date``: ``YYYY-MM-DD`` or ``DD/MM/YYYY``.
- ``description``: internal whitespace collapsed; may be empty.
- ``amount``: decimal string; thousands separators removed; quantized to 2dp.
- ``type``: ``CREDIT`` / ``DEBIT``; derived from the sign when blank/absent.
- ``category``: ledger only; blank becomes ``None``.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ...models import Side, TransactionKind, TransactionRecord

_HEADER_ALIASES: dict[str, str] = {
    "desc": "description",
    "kind": "type",
}
REQUIRED_HEADERS: frozenset[str] = frozenset({"id", "date", "description", "amount"})


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned if cleaned != "" else None


def _parse_date(value: str | None) -> date | None:
    s = (value or "").strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def _parse_amount(value: str | None) -> Decimal | None:
    s = (value or "").strip().replace(",", "")
    if not s:
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _parse_kind(value: str | None, amount: Decimal) -> TransactionKind | None:
    s = (value or "").strip().upper()
    if not s:
        return TransactionKind.from_amount(amount)
    try:
        return TransactionKind(s)
    except ValueError:
        return None


def normalize_header(fieldnames: Iterable[str] | None) -> dict[str, str]:
    """Map canonical column names to the header names used in the file."""

    out: dict[str, str] = {}
    for raw in fieldnames or []:
        key = raw.strip().lower()
        key = _HEADER_ALIASES.get(key, key)
        out.setdefault(key, raw)
    return out


def to_records(
    rows: Iterable[Mapping[str, str | None]],
    *,
    side: Side,
    header: Mapping[str, str],
    first_line: int = 2,
) -> Iterator[TransactionRecord]:
    """Convert CSV rows to :class:`TransactionRecord` objects.

    ``header`` maps canonical names to the file's header names (see
    :func:`normalize_header`). Raises ``ValueError`` naming the line number on
    the first row that cannot be converted.
    """

    def col(row: Mapping[str, str | None], name: str) -> str | None:
        key = header.get(name)
        return row.get(key) if key is not None else None

    for offset, row in enumerate(rows):
        line = first_line + offset
        rec_id = (col(row, "id") or "").strip()
        if not rec_id:
            raise ValueError(f"line {line}: missing id")
        tx_date = _parse_date(col(row, "date"))
        if tx_date is None:
            raise ValueError(f"line {line}: unparseable date {col(row, 'date')!r}")
        amount = _parse_amount(col(row, "amount"))
        if amount is None:
            raise ValueError(f"line {line}: unparseable amount {col(row, 'amount')!r}")
        kind = _parse_kind(col(row, "type"), amount)
        if kind is None:
            raise ValueError(f"line {line}: unknown transaction type {col(row, 'type')!r}")

        category = _clean_text(col(row, "category")) if side is Side.LEDGER else None
        yield TransactionRecord(
            id=rec_id,
            date=tx_date,
            description=_clean_text(col(row, "description")) or "",
            amount=amount,
            kind=kind,
            category=category,
        )


def read_records(lines: Iterable[str], *, side: Side, source: str = "<csv>") -> list[TransactionRecord]:
    """Parse an open CSV stream, validating the header first."""

    reader = csv.DictReader(lines)
    header = normalize_header(reader.fieldnames)
    if not header:
        raise csv.Error(f"CSV appears to have no header row: {source}")
    missing = sorted(h for h in REQUIRED_HEADERS if h not in header)
    if missing:
        raise csv.Error(
            f"CSV header mismatch for {side.value.lower()} records in {source}. "
            "Missing columns: " + ", ".join(missing)
        )
    return list(to_records(reader, side=side, header=header))


__all__ = ["REQUIRED_HEADERS", "normalize_header", "to_records", "read_records"]
