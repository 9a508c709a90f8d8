"""Prompt construction and record serialization for the matching oracle.

This module builds:
- A deterministic JSON serialization of transaction records with a fixed
  field order.
- The system instructions and user content for the matching task.
- The strict JSON Schema text format for the OpenAI Responses API.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import TransactionRecord

RECORD_FIELD_ORDER: tuple[str, ...] = (
    "id",
    "date",
    "description",
    "amount",
    "kind",
    "category",
)

BANK_BEGIN = "BEGIN_BANK_FEED_JSON"
BANK_END = "END_BANK_FEED_JSON"
LEDGER_BEGIN = "BEGIN_LEDGER_JSON"
LEDGER_END = "END_LEDGER_JSON"


def _record_view(rec: TransactionRecord) -> dict[str, Any]:
    return {
        "id": rec.id,
        "date": rec.date.isoformat(),
        "description": rec.description,
        "amount": float(rec.amount),
        "kind": rec.kind.value,
        "category": rec.category,
    }


def serialize_records_to_json(records: Sequence[TransactionRecord]) -> str:
    """Serialize records to a JSON array with a fixed field order.

    Field order per object is exactly: ``id, date, description, amount, kind,
    category``. Amounts are emitted as JSON numbers.
    """

    arr: list[dict[str, Any]] = []
    for rec in records:
        view = _record_view(rec)
        arr.append({key: view[key] for key in RECORD_FIELD_ORDER})
    return json.dumps(arr, ensure_ascii=False)


def build_system_instructions() -> str:
    return (
        "You are a bookkeeping agent that reconciles a company's bank feed against its "
        "internal ledger. Propose pairs of one bank record and one ledger record that "
        "describe the same real-world transaction. Never invent ids. Use each bank record "
        "and each ledger record at most once. Output JSON only that conforms to the "
        "specified schema."
    )


def build_user_content(
    bank_json: str,
    ledger_json: str,
    *,
    date_tolerance_days: int,
    currency: str,
) -> str:
    """Build the user content with both record sets embedded between markers."""

    day_word = "day" if date_tolerance_days == 1 else "days"
    lines = [
        f"Amounts are in {currency}; negative amounts are outflows.",
        "Match transactions based on:",
        "- Amount: exact, or close when fees or rounding explain the difference.",
        f"- Date: within {date_tolerance_days} {day_word} of each other.",
        "- Description: use it as supporting evidence only; bank descriptions are terse.",
        "For each proposed pair give a confidence between 0 and 1 and a short rationale "
        "naming the evidence. Omit bank records with no plausible ledger counterpart.",
        "",
        BANK_BEGIN,
        bank_json,
        BANK_END,
        "",
        LEDGER_BEGIN,
        ledger_json,
        LEDGER_END,
    ]
    return "\n".join(lines)


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema text format for match proposals.

    Schema shape::

        {"matches": [{"bank_record_id": str, "ledger_record_id": str,
                      "confidence": number in [0,1], "rationale": str}]}
    """

    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "reconciliation_matches",
        "schema": {
            "type": "object",
            "properties": {
                "matches": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "bank_record_id": {"type": "string"},
                            "ledger_record_id": {"type": "string"},
                            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                            "rationale": {"type": "string"},
                        },
                        "required": [
                            "bank_record_id",
                            "ledger_record_id",
                            "confidence",
                            "rationale",
                        ],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["matches"],
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "RECORD_FIELD_ORDER",
    "BANK_BEGIN",
    "BANK_END",
    "LEDGER_BEGIN",
    "LEDGER_END",
    "serialize_records_to_json",
    "build_system_instructions",
    "build_user_content",
    "build_response_format",
]
