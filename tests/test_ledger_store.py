from __future__ import annotations

import pytest

from ledger_recon.errors import RecordAlreadyLinked, RecordNotFound
from ledger_recon.models import Side
from ledger_recon.store import LedgerStore
from tests.helpers.records import rec


def _store() -> LedgerStore:
    return LedgerStore(
        bank_records=[rec("b1", "2024-05-20", "-45.00"), rec("b2", "2024-05-21", "-1250.00")],
        ledger_records=[
            rec("l1", "2024-05-20", "-45.00", category="Transport"),
            rec("l2", "2024-05-22", "-1250.00", category="Assets"),
        ],
    )


def test_link_sets_both_sides_symmetrically():
    store = _store()
    bank, ledger = store.link("b1", "l1")

    assert bank.linked_counterpart_id == "l1"
    assert ledger.linked_counterpart_id == "b1"
    assert store.get(Side.BANK, "b1").linked_counterpart_id == "l1"
    assert store.get(Side.LEDGER, "l1").linked_counterpart_id == "b1"
    assert store.linked_pairs() == {"b1": "l1"}
    assert [r.id for r in store.unlinked_bank()] == ["b2"]
    assert [r.id for r in store.unlinked_ledger()] == ["l2"]


def test_link_preserves_other_fields():
    store = _store()
    _bank, ledger = store.link("b1", "l1")
    assert ledger.category == "Transport"
    assert ledger.description == "L1"


@pytest.mark.parametrize(
    ("bank_id", "ledger_id", "missing_side"),
    [("bX", "l1", Side.BANK), ("b1", "lX", Side.LEDGER)],
)
def test_link_unknown_id_raises_and_changes_nothing(bank_id, ledger_id, missing_side):
    store = _store()
    with pytest.raises(RecordNotFound) as ei:
        store.link(bank_id, ledger_id)
    assert ei.value.side is missing_side
    assert store.linked_pairs() == {}
    assert all(not r.is_linked for r in store.bank_records() + store.ledger_records())


def test_link_refuses_to_break_existing_pair():
    store = _store()
    store.link("b1", "l1")
    with pytest.raises(RecordAlreadyLinked):
        store.link("b2", "l1")
    with pytest.raises(RecordAlreadyLinked):
        store.link("b1", "l2")
    assert store.linked_pairs() == {"b1": "l1"}
    assert store.get(Side.LEDGER, "l2").linked_counterpart_id is None


def test_relinking_same_pair_is_noop():
    store = _store()
    store.link("b1", "l1")
    store.link("b1", "l1")
    assert store.counts().linked_pairs == 1


def test_unlinked_views_honor_exclude_and_order():
    store = _store()
    assert [r.id for r in store.unlinked_bank(exclude={"b1"})] == ["b2"]
    assert [r.id for r in store.unlinked_ledger(exclude=())] == ["l1", "l2"]


def test_duplicate_ids_rejected_without_partial_append():
    store = _store()
    with pytest.raises(ValueError, match="duplicate"):
        store.add_bank_records([rec("b3", "2024-05-22", "1.00"), rec("b1", "2024-05-20", "1.00")])
    assert [r.id for r in store.bank_records()] == ["b1", "b2"]


def test_bank_records_cannot_carry_category():
    with pytest.raises(ValueError, match="category"):
        LedgerStore(bank_records=[rec("b1", "2024-05-20", "-1.00", category="Food")])


def test_get_and_find():
    store = _store()
    assert store.find(Side.BANK, "nope") is None
    with pytest.raises(RecordNotFound):
        store.get(Side.LEDGER, "nope")
    counts = store.counts()
    assert (counts.bank, counts.ledger, counts.linked_pairs) == (2, 2, 0)
