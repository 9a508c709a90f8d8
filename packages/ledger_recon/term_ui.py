"""Tiny terminal UI helpers (prompt_toolkit and rich).

These helpers stay decoupled from the review loop so they're easy to test in
isolation: the decision prompt with a pipe input, the tables with a recording
``Console``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal, TypeAlias

from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import ValidationError, Validator
from rich.console import Console
from rich.table import Table

from .models import MatchCandidate, TransactionRecord

Decision: TypeAlias = Literal["confirm", "dismiss", "skip"]

DECISIONS: tuple[str, ...] = ("confirm", "dismiss", "skip")
_SHORTCUTS: dict[str, str] = {"c": "confirm", "d": "dismiss", "s": "skip"}


def _normalize(text: str) -> str | None:
    t = text.strip().lower()
    if t in DECISIONS:
        return t
    return _SHORTCUTS.get(t)


def format_record(rec: TransactionRecord, *, currency: str = "SAR") -> str:
    line = f"{rec.id}  {rec.date.isoformat()}  {rec.amount:,.2f} {currency}  {rec.description}"
    if rec.category:
        line += f"  [{rec.category}]"
    return line


def prompt_match_decision(
    candidate: MatchCandidate,
    bank: TransactionRecord,
    ledger: TransactionRecord,
    *,
    session: PromptSession | None = None,
    currency: str = "SAR",
    message: str = "confirm / dismiss / skip (Enter or Esc to skip): ",
) -> Decision:
    """Show one candidate next to its two records and ask for a decision.

    Accepts ``confirm``, ``dismiss`` or ``skip`` (also ``c``/``d``/``s``, any
    case). Enter on an empty buffer and Esc both return ``"skip"``.
    """

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result="skip")

    class _DecisionValidator(Validator):
        def validate(self, document) -> None:
            if document.text.strip() and _normalize(document.text) is None:
                raise ValidationError(message="Type confirm, dismiss or skip.")

    if session is None:
        sess: PromptSession = PromptSession(key_bindings=kb)
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
            key_bindings=kb,
        )

    print_formatted_text(
        f"\nProposed match (confidence {candidate.confidence:.2f}): {candidate.rationale}\n"
        f"  bank:   {format_record(bank, currency=currency)}\n"
        f"  ledger: {format_record(ledger, currency=currency)}",
        output=sess.output,
    )

    value = sess.prompt(
        message,
        completer=WordCompleter(list(DECISIONS), ignore_case=True, sentence=False),
        validator=_DecisionValidator(),
        validate_while_typing=False,
    )
    decision = _normalize(value or "")
    if decision is None:
        return "skip"
    return decision  # type: ignore[return-value]


def render_candidates_table(
    candidates: Iterable[MatchCandidate],
    *,
    bank_lookup: dict[str, TransactionRecord],
    ledger_lookup: dict[str, TransactionRecord],
    console: Console,
    currency: str = "SAR",
    title: str = "Proposed matches",
) -> None:
    """Print pending candidates as a rich table (bank row beside ledger row)."""

    table = Table(title=title)
    table.add_column("Bank", style="cyan", no_wrap=True)
    table.add_column("Ledger", style="magenta", no_wrap=True)
    table.add_column(f"Amount ({currency})", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Rationale")

    for cand in candidates:
        bank = bank_lookup.get(cand.bank_record_id)
        ledger = ledger_lookup.get(cand.ledger_record_id)
        table.add_row(
            f"{cand.bank_record_id} {bank.description if bank else ''}".strip(),
            f"{cand.ledger_record_id} {ledger.description if ledger else ''}".strip(),
            f"{bank.amount:,.2f}" if bank else "",
            f"{cand.confidence:.2f}",
            cand.rationale,
        )
    console.print(table)


def render_unlinked_table(
    records: Iterable[TransactionRecord],
    *,
    console: Console,
    title: str,
    currency: str = "SAR",
) -> None:
    table = Table(title=title)
    table.add_column("Id", no_wrap=True)
    table.add_column("Date")
    table.add_column("Description")
    table.add_column(f"Amount ({currency})", justify="right")
    table.add_column("Type")
    for rec in records:
        table.add_row(
            rec.id,
            rec.date.isoformat(),
            rec.description,
            f"{rec.amount:,.2f}",
            rec.kind.value,
        )
    console.print(table)


__all__ = [
    "DECISIONS",
    "Decision",
    "format_record",
    "prompt_match_decision",
    "render_candidates_table",
    "render_unlinked_table",
]
