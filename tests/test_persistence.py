from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from sqlalchemy import select

from ledger_recon.db.client import session_scope
from ledger_recon.db.models import ReconTransaction
from ledger_recon.models import Side
from ledger_recon.persistence import load_store, save_links, save_store
from ledger_recon.sample_data import demo_store
from tests.helpers.db import bootstrap_sqlite_db


def test_save_then_load_round_trips_records_and_order(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "recon.db")
    store = demo_store()
    store.link("b1", "l1")

    with session_scope(database_url=url) as session:
        written = save_store(session, store, currency_code="SAR")
    assert written == 9

    with session_scope(database_url=url) as session:
        loaded = load_store(session)

    assert loaded.bank_records() == store.bank_records()
    assert loaded.ledger_records() == store.ledger_records()
    assert loaded.linked_pairs() == {"b1": "l1"}
    assert loaded.get(Side.BANK, "b4").amount == Decimal("-230.50")


def test_save_store_is_idempotent_and_updates_link_state(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "recon.db")
    store = demo_store()
    with session_scope(database_url=url) as session:
        save_store(session, store)

    store.link("b3", "l3")
    with session_scope(database_url=url) as session:
        save_store(session, store)

    with session_scope(database_url=url) as session:
        rows = session.scalars(select(ReconTransaction).order_by(ReconTransaction.id)).all()
        assert len(rows) == 9
        linked = {(r.side, r.record_id): r.linked_counterpart_id for r in rows}
        currencies = {r.currency_code for r in rows}
    assert linked[("bank", "b3")] == "l3"
    assert linked[("ledger", "l3")] == "b3"
    assert linked[("bank", "b1")] is None
    assert currencies == {"SAR"}


def test_save_links_updates_both_rows(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "recon.db")
    with session_scope(database_url=url) as session:
        save_store(session, demo_store())

    with session_scope(database_url=url) as session:
        updated = save_links(session, {"b2": "l2", "b9": "l9"})
    assert updated == 2

    with session_scope(database_url=url) as session:
        store = load_store(session)
    assert store.linked_pairs() == {"b2": "l2"}
    assert store.get(Side.LEDGER, "l2").linked_counterpart_id == "b2"


def test_load_store_on_empty_table(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "recon.db")
    with session_scope(database_url=url) as session:
        store = load_store(session)
    assert store.counts().bank == 0
