# ruff: noqa: I001
"""CLI for the ``ledger_recon`` package.

This module exposes callable command handlers (``cmd_match``, ``cmd_ingest``,
``cmd_demo``) and a Typer-based console interface. Environment variables
(notably ``OPENAI_API_KEY`` and ``DATABASE_URL``) are loaded from a local
``.env`` using ``python-dotenv`` before delegating to command logic. Handlers
return a process exit code and print ``Error: ...`` to stderr on failure.
"""

from __future__ import annotations

import asyncio
import csv
import json
import sys
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from typer.models import OptionInfo

from .engine import ReconciliationEngine
from .logging_setup import configure_logging
from .models import AutoMatchResult, AutoMatchStatus
from .oracle import AmountDateOracle, MatchingOracle, TimeoutOracle
from .review import DecideFn, ReviewSummary, review_pending_matches
from .settings import ReconSettings
from .store import LedgerStore
from .term_ui import render_candidates_table, render_unlinked_table

ORACLE_CHOICES: tuple[str, ...] = ("openai", "rules")


# ---- Small module-level helpers used by CLI commands -------------------------


def _error(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _build_oracle(name: str, settings: ReconSettings) -> MatchingOracle:
    """Create the named oracle, bounded by the configured timeout when set.

    Raises ``ValueError`` for an unknown name or a missing ``OPENAI_API_KEY``.
    """

    import os

    oracle: MatchingOracle
    if name == "rules":
        oracle = AmountDateOracle(
            date_tolerance_days=settings.date_tolerance_days,
            amount_tolerance=settings.amount_tolerance,
        )
    elif name == "openai":
        if not os.getenv("OPENAI_API_KEY"):
            raise ValueError("OPENAI_API_KEY is not set in the environment.")
        # Deferred: the OpenAI SDK is only needed for this oracle.
        from .openai_oracle import OpenAIMatchingOracle

        oracle = OpenAIMatchingOracle(settings)
    else:
        raise ValueError(f"unknown oracle {name!r}; choose one of: {', '.join(ORACLE_CHOICES)}")

    if settings.oracle_timeout_sec is not None:
        oracle = TimeoutOracle(oracle, settings.oracle_timeout_sec)
    return oracle


def _skip_all(*_args: Any) -> str:
    return "skip"


def _build_report(
    store: LedgerStore,
    result: AutoMatchResult,
    summary: ReviewSummary,
    *,
    currency: str,
) -> dict[str, Any]:
    def cand(c: Any) -> dict[str, Any]:
        return {
            "bank_record_id": c.bank_record_id,
            "ledger_record_id": c.ledger_record_id,
            "confidence": c.confidence,
            "rationale": c.rationale,
        }

    return {
        "status": result.status.value,
        "currency": currency,
        "proposed": [cand(c) for c in result.added],
        "rejected": [e.to_dict() for e in result.rejected],
        "skipped_proposals": [cand(c) for c in result.skipped],
        "confirmed": [cand(c) for c in summary.confirmed],
        "auto_confirmed": summary.auto_confirmed,
        "dismissed": [cand(c) for c in summary.dismissed],
        "skipped": [cand(c) for c in summary.skipped],
        "warnings": [w.to_dict() for w in summary.warnings],
        "linked_pairs": store.linked_pairs(),
        "unlinked_bank": [r.id for r in store.unlinked_bank()],
        "unlinked_ledger": [r.id for r in store.unlinked_ledger()],
    }


def _run_reconciliation(
    store: LedgerStore,
    settings: ReconSettings,
    *,
    oracle_name: str,
    review: bool,
    console: Console,
    decide: DecideFn | None = None,
    oracle: MatchingOracle | None = None,
) -> tuple[int, AutoMatchResult | None, ReviewSummary | None]:
    """Auto-match, render, review. Returns ``(exit_code, result, summary)``."""

    if oracle is None:
        try:
            oracle = _build_oracle(oracle_name, settings)
        except ValueError as e:
            return _error(str(e)), None, None

    engine = ReconciliationEngine(store, oracle)
    counts = store.counts()
    console.print(
        f"Loaded {counts.bank} bank and {counts.ledger} ledger records "
        f"({counts.linked_pairs} already reconciled)."
    )

    result = asyncio.run(engine.run_auto_match())
    if result.status is AutoMatchStatus.ORACLE_UNAVAILABLE:
        detail = result.error.message if result.error else "matching oracle unavailable"
        return _error(f"{detail}. No matches were changed; try again later."), result, None
    if result.status is AutoMatchStatus.SKIPPED_EMPTY:
        console.print("Nothing to match: one side has no unlinked records.")
    if result.rejected:
        console.print(f"[yellow]Discarded {len(result.rejected)} invalid proposal(s).[/yellow]")
    if result.skipped:
        console.print(
            f"Left out {len(result.skipped)} proposal(s) overlapping an existing candidate "
            "or an already reconciled record."
        )

    if result.added:
        render_candidates_table(
            result.added,
            bank_lookup={r.id: r for r in store.bank_records()},
            ledger_lookup={r.id: r for r in store.ledger_records()},
            console=console,
            currency=settings.currency,
        )

    summary = review_pending_matches(
        engine,
        decide=decide if review else _skip_all,
        currency=settings.currency,
        auto_confirm_confidence=settings.auto_confirm_confidence,
        on_progress=console.print,
    )
    console.print(
        f"Confirmed {len(summary.confirmed)} (auto {summary.auto_confirmed}), "
        f"dismissed {len(summary.dismissed)}, skipped {len(summary.skipped)}."
    )

    unlinked_bank = store.unlinked_bank()
    if unlinked_bank:
        render_unlinked_table(
            unlinked_bank,
            console=console,
            title="Unreconciled bank feed",
            currency=settings.currency,
        )
    return 0, result, summary


def _write_report(path: Path, report: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
        f.write("\n")


# ---- Command handlers -----------------------------------------------------------


def cmd_match(
    bank_csv: str | None,
    ledger_csv: str | None,
    *,
    oracle_name: str = "openai",
    auto_confirm: float | None = None,
    review: bool = True,
    persist: bool = False,
    database_url: str | None = None,
    output: str | None = None,
    decide: DecideFn | None = None,
    oracle: MatchingOracle | None = None,
    console: Console | None = None,
) -> int:
    """Reconcile a bank feed against the ledger and print the outcome.

    Behavior
    --------
    - Loads records from ``bank_csv``/``ledger_csv``; when neither is given and
      a database URL is configured, resumes the session stored there.
    - Runs one auto-match pass with the chosen oracle (``openai`` or
      ``rules``) and renders the proposed pairs.
    - Auto-confirms proposals at or above ``auto_confirm`` and, unless
      ``review`` is False, asks about each remaining one.
    - With ``persist``, writes records and link state to the database.
    - With ``output``, writes a JSON report of the run.

    An unavailable oracle leaves everything unchanged and returns ``1``.
    """

    try:
        settings = ReconSettings.from_env().with_overrides(
            auto_confirm_confidence=auto_confirm, database_url=database_url
        )
    except ValueError as e:
        return _error(f"invalid configuration: {e}")

    from_db = False
    if bank_csv and ledger_csv:
        from .ingest.utils import load_store_from_csv

        try:
            store = load_store_from_csv(bank_csv, ledger_csv)
        except FileNotFoundError as e:
            return _error(f"File not found: {e.filename}")
        except PermissionError as e:
            return _error(f"Permission denied: {e.filename}")
        except csv.Error as e:
            return _error(f"Failed to parse CSV: {e}")
        except ValueError as e:
            return _error(f"Invalid CSV row: {e}")
    elif bank_csv or ledger_csv:
        return _error("--bank-csv and --ledger-csv must be given together.")
    elif settings.database_url:
        from .db.client import session_scope
        from .persistence import load_store

        try:
            with session_scope(database_url=settings.database_url) as session:
                store = load_store(session)
        except Exception as e:
            return _error(f"failed to load records from the database: {e}")
        from_db = True
    else:
        return _error("provide --bank-csv and --ledger-csv, or a database URL to resume.")

    console = console or Console()
    rc, result, summary = _run_reconciliation(
        store,
        settings,
        oracle_name=oracle_name,
        review=review,
        console=console,
        decide=decide,
        oracle=oracle,
    )
    if rc != 0 or result is None or summary is None:
        return rc

    if persist:
        if not settings.database_url:
            return _error("--persist requires DATABASE_URL or --database-url.")
        from .db.client import session_scope
        from .persistence import save_links, save_store

        try:
            if from_db:
                with session_scope(database_url=settings.database_url) as session:
                    save_links(
                        session,
                        {c.bank_record_id: c.ledger_record_id for c in summary.confirmed},
                    )
            else:
                with session_scope(database_url=settings.database_url, create=True) as session:
                    save_store(session, store, currency_code=settings.currency)
        except Exception as e:
            return _error(f"persistence failed: {e}")

    if output:
        try:
            _write_report(
                Path(output), _build_report(store, result, summary, currency=settings.currency)
            )
        except OSError as e:
            return _error(f"failed to write report '{output}': {e}")

    return 0


def cmd_ingest(bank_csv: str, ledger_csv: str, *, database_url: str | None = None) -> int:
    """Load both CSV exports and upsert them into the database."""

    from .db.client import session_scope
    from .ingest.utils import load_store_from_csv
    from .persistence import save_store

    try:
        settings = ReconSettings.from_env().with_overrides(database_url=database_url)
    except ValueError as e:
        return _error(f"invalid configuration: {e}")
    if not settings.database_url:
        return _error("DATABASE_URL is not set and --database-url was not given.")

    try:
        store = load_store_from_csv(bank_csv, ledger_csv)
    except FileNotFoundError as e:
        return _error(f"File not found: {e.filename}")
    except csv.Error as e:
        return _error(f"Failed to parse CSV: {e}")
    except ValueError as e:
        return _error(f"Invalid CSV row: {e}")

    try:
        with session_scope(database_url=settings.database_url, create=True) as session:
            written = save_store(session, store, currency_code=settings.currency)
    except Exception as e:
        return _error(f"persistence failed: {e}")

    counts = store.counts()
    print(f"Stored {counts.bank} bank and {counts.ledger} ledger records ({written} rows written).")
    return 0


def cmd_demo(
    *,
    oracle_name: str = "rules",
    review: bool = True,
    decide: DecideFn | None = None,
    console: Console | None = None,
) -> int:
    """Run one reconciliation pass over the built-in sample data."""

    from .sample_data import demo_store

    try:
        settings = ReconSettings.from_env()
    except ValueError as e:
        return _error(f"invalid configuration: {e}")
    rc, _result, _summary = _run_reconciliation(
        demo_store(),
        settings,
        oracle_name=oracle_name,
        review=review,
        console=console or Console(),
        decide=decide,
    )
    return rc


# ---- Typer application --------------------------------------------------------------

app = typer.Typer(
    add_completion=False,
    help="Reconcile a bank feed against the internal ledger.",
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
BANK_CSV_OPTION: OptionInfo = typer.Option(
    None, "--bank-csv", help="Bank feed CSV export.", dir_okay=False
)
LEDGER_CSV_OPTION: OptionInfo = typer.Option(
    None, "--ledger-csv", help="Internal ledger CSV export.", dir_okay=False
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


def _exit(rc: int) -> None:
    if rc != 0:
        raise typer.Exit(rc)


@app.command("match")
def match_cmd(
    bank_csv: Path | None = BANK_CSV_OPTION,
    ledger_csv: Path | None = LEDGER_CSV_OPTION,
    *,
    oracle: str = typer.Option("openai", help="Matching oracle: openai or rules."),
    auto_confirm: float | None = typer.Option(
        None, help="Confirm proposals with confidence >= this value without asking."
    ),
    no_review: bool = typer.Option(False, "--no-review", help="Skip the interactive review."),
    persist: bool = typer.Option(False, help="Write records and link state to the database."),
    database_url: str | None = DATABASE_URL_OPTION,
    output: Path | None = typer.Option(None, help="Write a JSON report to this path."),
) -> None:
    _exit(
        cmd_match(
            str(bank_csv) if bank_csv else None,
            str(ledger_csv) if ledger_csv else None,
            oracle_name=oracle,
            auto_confirm=auto_confirm,
            review=not no_review,
            persist=persist,
            database_url=database_url,
            output=str(output) if output else None,
        )
    )


@app.command("ingest")
def ingest_cmd(
    bank_csv: Path = typer.Option(..., "--bank-csv", help="Bank feed CSV export."),
    ledger_csv: Path = typer.Option(..., "--ledger-csv", help="Internal ledger CSV export."),
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    _exit(cmd_ingest(str(bank_csv), str(ledger_csv), database_url=database_url))


@app.command("demo")
def demo_cmd(
    *,
    oracle: str = typer.Option("rules", help="Matching oracle: rules or openai."),
    no_review: bool = typer.Option(False, "--no-review", help="Skip the interactive review."),
) -> None:
    _exit(cmd_demo(oracle_name=oracle, review=not no_review))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level (default: LEDGER_RECON_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from e

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()


__all__ = ["app", "cmd_match", "cmd_ingest", "cmd_demo"]