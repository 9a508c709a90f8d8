from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

import ledger_recon.openai_oracle as oracle_mod
from ledger_recon.engine import ReconciliationEngine
from ledger_recon.errors import InvalidCandidate
from ledger_recon.models import AutoMatchStatus, MatchCandidate, Side
from ledger_recon.openai_oracle import OpenAIMatchingOracle
from ledger_recon.sample_data import bank_feed, demo_store, ledger_entries
from ledger_recon.settings import ReconSettings
from tests.helpers.openai_stub import APIStatusErrorStub, AsyncOpenAIStub


def _match_same_amount_and_date(
    bank: list[dict[str, Any]], ledger: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    out = []
    for b in bank:
        for item in ledger:
            if b["amount"] == item["amount"] and b["date"] == item["date"]:
                out.append(
                    {
                        "bank_record_id": b["id"],
                        "ledger_record_id": item["id"],
                        "confidence": 0.97,
                        "rationale": "amount+date match",
                    }
                )
    return out


def _item(bank_id: str, ledger_id: str, confidence: float, rationale: str) -> dict[str, Any]:
    return {
        "bank_record_id": bank_id,
        "ledger_record_id": ledger_id,
        "confidence": confidence,
        "rationale": rationale,
    }


@pytest.fixture(autouse=True)
def _no_backoff_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    slept: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        slept.append(delay)

    monkeypatch.setattr(oracle_mod.asyncio, "sleep", _fake_sleep)
    return slept


def _propose(oracle: OpenAIMatchingOracle):
    return asyncio.run(oracle.propose_matches(bank_feed(), ledger_entries()))


def test_request_shape_and_parsed_candidates():
    stub = AsyncOpenAIStub(_match_same_amount_and_date)
    oracle = OpenAIMatchingOracle(ReconSettings(model="gpt-test"), client=stub)

    out = _propose(oracle)
    assert out == [
        MatchCandidate("b1", "l1", 0.97, "amount+date match"),
        MatchCandidate("b3", "l3", 0.97, "amount+date match"),
    ]

    assert len(stub.calls) == 1
    call = stub.calls[0]
    assert call["model"] == "gpt-test"
    assert "reconciles" in call["instructions"]
    fmt = call["text"]["format"]
    assert fmt["type"] == "json_schema"
    assert fmt["strict"] is True
    assert fmt["name"] == "reconciliation_matches"
    assert "within 3 days" in call["input"]
    assert "SAR" in call["input"]


def test_embedded_records_use_fixed_field_order():
    stub = AsyncOpenAIStub()
    _propose(OpenAIMatchingOracle(ReconSettings(), client=stub))
    user_content = stub.calls[0]["input"]
    start = user_content.index("BEGIN_LEDGER_JSON\n") + len("BEGIN_LEDGER_JSON\n")
    end = user_content.index("\nEND_LEDGER_JSON")
    ledger = json.loads(user_content[start:end])
    assert list(ledger[0].keys()) == ["id", "date", "description", "amount", "kind", "category"]
    assert ledger[0]["amount"] == -45.0
    assert ledger[0]["category"] == "Transport"


def test_retries_on_429_then_succeeds(_no_backoff_sleep: list[float]):
    stub = AsyncOpenAIStub(_match_same_amount_and_date, errors=[APIStatusErrorStub(429)])
    oracle = OpenAIMatchingOracle(ReconSettings(max_attempts=3), client=stub)

    out = _propose(oracle)
    assert len(out) == 2
    assert len(stub.calls) == 2
    assert len(_no_backoff_sleep) == 1
    assert 0.4 <= _no_backoff_sleep[0] <= 0.6


def test_gives_up_after_max_attempts_on_5xx():
    stub = AsyncOpenAIStub(errors=[APIStatusErrorStub(503)] * 5)
    oracle = OpenAIMatchingOracle(ReconSettings(max_attempts=2), client=stub)
    with pytest.raises(APIStatusErrorStub):
        _propose(oracle)
    assert len(stub.calls) == 2


def test_client_errors_are_not_retried():
    stub = AsyncOpenAIStub(errors=[APIStatusErrorStub(400)])
    oracle = OpenAIMatchingOracle(ReconSettings(max_attempts=3), client=stub)
    with pytest.raises(APIStatusErrorStub):
        _propose(oracle)
    assert len(stub.calls) == 1


@pytest.mark.parametrize(
    "raw_text",
    [
        "not json",
        json.dumps([]),
        json.dumps({"results": []}),
        json.dumps({"matches": "b1:l1"}),
    ],
)
def test_invalid_model_output_is_terminal_value_error(raw_text: str):
    stub = AsyncOpenAIStub(raw_text=raw_text)
    oracle = OpenAIMatchingOracle(ReconSettings(max_attempts=3), client=stub)
    with pytest.raises(ValueError):
        _propose(oracle)
    assert len(stub.calls) == 1


def test_engine_surfaces_invalid_output_as_oracle_unavailable():
    stub = AsyncOpenAIStub(raw_text="not json")
    engine = ReconciliationEngine(
        demo_store(), OpenAIMatchingOracle(ReconSettings(), client=stub)
    )
    result = asyncio.run(engine.run_auto_match())
    assert result.status is AutoMatchStatus.ORACLE_UNAVAILABLE
    assert isinstance(result.error.__cause__, ValueError)
    assert engine.pending_candidates == []


def test_engine_rejects_hallucinated_ids_from_model():
    def decide(_bank, _ledger):
        return [
            {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": 1, "rationale": "ok"},
            {"bank_record_id": "b9", "ledger_record_id": "l2", "confidence": 0.8, "rationale": "?"},
        ]

    engine = ReconciliationEngine(
        demo_store(), OpenAIMatchingOracle(ReconSettings(), client=AsyncOpenAIStub(decide))
    )
    result = asyncio.run(engine.run_auto_match())
    assert [c.bank_record_id for c in result.added] == ["b1"]
    assert result.added[0].confidence == 1.0
    assert [e.reason for e in result.rejected] == ["unknown bank record id"]


def test_bad_item_is_returned_as_invalid_candidate_without_retry():
    def decide(_bank, _ledger):
        return [
            _item("b1", "l1", 0.97, "ok"),
            _item("b2", "l2", 1.2, "bad"),
        ]

    stub = AsyncOpenAIStub(decide)
    proposals = _propose(OpenAIMatchingOracle(ReconSettings(max_attempts=3), client=stub))

    assert len(stub.calls) == 1
    assert proposals[0] == MatchCandidate("b1", "l1", 0.97, "ok")
    assert isinstance(proposals[1], InvalidCandidate)


def test_engine_keeps_valid_siblings_of_an_out_of_range_item():
    def decide(_bank, _ledger):
        return [
            _item("b1", "l1", 0.97, "ok"),
            _item("b2", "l2", 1.2, "bad"),
            _item("b3", "l3", 0.9, ""),
        ]

    engine = ReconciliationEngine(
        demo_store(), OpenAIMatchingOracle(ReconSettings(), client=AsyncOpenAIStub(decide))
    )
    result = asyncio.run(engine.run_auto_match())

    assert result.status is AutoMatchStatus.COMPLETED
    assert result.added == (MatchCandidate("b1", "l1", 0.97, "ok"),)
    assert engine.pending_candidates == [MatchCandidate("b1", "l1", 0.97, "ok")]
    assert len(result.rejected) == 2
    assert "confidence" in result.rejected[0].reason
    assert "rationale" in result.rejected[1].reason
    assert engine.candidate_for("b2", Side.BANK) is None


def test_client_is_created_lazily_with_timeout(monkeypatch: pytest.MonkeyPatch):
    created: list[dict[str, Any]] = []
    stub = AsyncOpenAIStub()

    def _factory(**kwargs: Any) -> AsyncOpenAIStub:
        created.append(kwargs)
        return stub

    monkeypatch.setattr(oracle_mod, "AsyncOpenAI", _factory)
    oracle = OpenAIMatchingOracle(ReconSettings(oracle_timeout_sec=12.5))
    assert created == []
    _propose(oracle)
    _propose(oracle)
    assert created == [{"timeout": 12.5}]
