from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from ledger_recon.errors import InvalidCandidate
from ledger_recon.models import MatchCandidate
from ledger_recon.parsing import extract_response_json_mapping, parse_match_candidates
from ledger_recon.prompting import (
    BANK_BEGIN,
    BANK_END,
    LEDGER_BEGIN,
    LEDGER_END,
    build_response_format,
    build_user_content,
    serialize_records_to_json,
)
from ledger_recon.sample_data import bank_feed, ledger_entries


def test_serialize_records_fixed_order_and_types():
    arr = json.loads(serialize_records_to_json(ledger_entries()[:1]))
    assert arr == [
        {
            "id": "l1",
            "date": "2024-05-20",
            "description": "Site Visit Transport",
            "amount": -45.0,
            "kind": "DEBIT",
            "category": "Transport",
        }
    ]
    bank = json.loads(serialize_records_to_json(bank_feed()[:1]))
    assert bank[0]["category"] is None


def test_user_content_embeds_both_blocks_between_markers():
    content = build_user_content("[1]", "[2]", date_tolerance_days=1, currency="USD")
    assert f"{BANK_BEGIN}\n[1]\n{BANK_END}" in content
    assert f"{LEDGER_BEGIN}\n[2]\n{LEDGER_END}" in content
    assert "within 1 day of" in content
    assert "USD" in content


def test_response_format_requires_all_match_fields():
    fmt = build_response_format()
    item = fmt["schema"]["properties"]["matches"]["items"]
    assert set(item["required"]) == {"bank_record_id", "ledger_record_id", "confidence", "rationale"}
    assert item["additionalProperties"] is False
    assert fmt["schema"]["required"] == ["matches"]


def test_extract_prefers_output_text_and_falls_back_to_content():
    body = {"matches": []}
    assert extract_response_json_mapping(SimpleNamespace(output_text=json.dumps(body))) == body

    nested = SimpleNamespace(
        output_text="",
        output=[SimpleNamespace(content=[SimpleNamespace(text=json.dumps(body))])],
    )
    assert extract_response_json_mapping(nested) == body

    value_obj = SimpleNamespace(
        output_text=None,
        output=[SimpleNamespace(content=[SimpleNamespace(text=SimpleNamespace(value="{}"))])],
    )
    assert extract_response_json_mapping(value_obj) == {}


def test_extract_raises_without_text():
    with pytest.raises(ValueError, match="unable to locate"):
        extract_response_json_mapping(SimpleNamespace(output_text=None, output=[]))


def test_parse_match_candidates_in_response_order():
    body = {
        "matches": [
            {"bank_record_id": "b2", "ledger_record_id": "l2", "confidence": 0.9, "rationale": "a"},
            {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": 0, "rationale": " b "},
        ]
    }
    assert parse_match_candidates(body) == [
        MatchCandidate("b2", "l2", 0.9, "a"),
        MatchCandidate("b1", "l1", 0.0, "b"),
    ]


@pytest.mark.parametrize(
    "item",
    [
        {"bank_record_id": "", "ledger_record_id": "l1", "confidence": 0.5, "rationale": "x"},
        {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": "0.5", "rationale": "x"},
        {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": True, "rationale": "x"},
        {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": -0.1, "rationale": "x"},
        {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": 0.5},
        {"bank_record_id": 1, "ledger_record_id": "l1", "confidence": 0.5, "rationale": "x"},
        "b1:l1",
    ],
)
def test_parse_match_candidates_flags_bad_item_and_keeps_siblings(item):
    good = {"bank_record_id": "b2", "ledger_record_id": "l2", "confidence": 0.9, "rationale": "a"}
    parsed = parse_match_candidates({"matches": [good, item, good]})

    assert len(parsed) == 3
    assert parsed[0] == parsed[2] == MatchCandidate("b2", "l2", 0.9, "a")
    assert isinstance(parsed[1], InvalidCandidate)
    assert parsed[1].reason


def test_parse_match_candidates_reason_names_the_field():
    bad = {"bank_record_id": "b1", "ledger_record_id": "l1", "confidence": 1.2, "rationale": "x"}
    (err,) = parse_match_candidates({"matches": [bad]})
    assert isinstance(err, InvalidCandidate)
    assert "confidence" in err.reason
    assert err.candidate == bad


@pytest.mark.parametrize("body", [{}, {"matches": None}, {"matches": {"b1": "l1"}}])
def test_parse_match_candidates_rejects_bad_top_level_shape(body):
    with pytest.raises(ValueError, match="Invalid response"):
        parse_match_candidates(body)
