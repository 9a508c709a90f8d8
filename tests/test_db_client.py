from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import inspect, select

from ledger_recon.db.client import get_engine, resolve_database_url, session_scope
from ledger_recon.db.models import ReconTransaction


def _url(tmp_path: Path, name: str) -> str:
    return f"sqlite+pysqlite:///{tmp_path / name}"


def test_missing_url_is_reported():
    with pytest.raises(RuntimeError, match="DATABASE_URL is not set"):
        resolve_database_url()


def test_url_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    url = _url(tmp_path, "env.db")
    monkeypatch.setenv("DATABASE_URL", url)
    assert resolve_database_url() == url
    assert get_engine() is get_engine(database_url=url)


def test_session_scope_can_create_the_schema(tmp_path: Path):
    url = _url(tmp_path, "fresh.db")
    with session_scope(database_url=url, create=True) as session:
        assert session.scalars(select(ReconTransaction)).all() == []
    assert "recon_transactions" in inspect(get_engine(database_url=url)).get_table_names()


def test_new_url_rebinds_the_shared_engine(tmp_path: Path):
    first = get_engine(database_url=_url(tmp_path, "a.db"))
    assert get_engine(database_url=_url(tmp_path, "a.db")) is first

    second = get_engine(database_url=_url(tmp_path, "b.db"))
    assert second is not first
    assert str(second.url).endswith("b.db")


def test_session_scope_rolls_back_on_error(tmp_path: Path):
    url = _url(tmp_path, "rollback.db")
    with pytest.raises(RuntimeError, match="boom"):
        with session_scope(database_url=url, create=True) as session:
            session.add(
                ReconTransaction(
                    side="bank",
                    record_id="b1",
                    date=date(2024, 5, 20),
                    amount=Decimal("-45.00"),
                    kind="DEBIT",
                )
            )
            session.flush()
            raise RuntimeError("boom")

    with session_scope(database_url=url) as session:
        assert session.scalars(select(ReconTransaction)).all() == []
