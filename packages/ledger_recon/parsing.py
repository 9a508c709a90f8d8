"""Response parsing for the LLM matching oracle.

Only top-level shape problems (no text, bad JSON, missing ``matches``) raise
``ValueError``. A single bad item never sinks its siblings: it is returned as
an :class:`~ledger_recon.errors.InvalidCandidate` and the engine reports it.
Whether the proposed ids exist is *not* checked here; the engine discards
candidates that reference unknown records.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .errors import InvalidCandidate
from .models import MatchCandidate, OracleMatch


def extract_response_json_mapping(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON mapping from an OpenAI Responses SDK result.

    - Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``.
    - Raise ``ValueError`` if text cannot be located or if JSON decoding fails.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    # Some SDKs expose text as an object with a ``value`` string.
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON per the requested schema") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("Invalid response: expected a JSON object at top level")
    return decoded


def _validation_reason(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg', 'invalid')}" if loc else item.get("msg", "invalid"))
    return "; ".join(parts) or "failed validation"


def parse_match_candidates(
    body: Mapping[str, Any],
) -> list[MatchCandidate | InvalidCandidate]:
    """Validate the ``matches`` array item by item, keeping response order.

    Items that fail validation come back as :class:`InvalidCandidate` in their
    original position so the engine can report them next to the valid ones.
    """

    matches = body.get("matches")
    if not isinstance(matches, list):
        raise ValueError("Invalid response: missing or non-list 'matches'")

    out: list[MatchCandidate | InvalidCandidate] = []
    for item in matches:
        if not isinstance(item, Mapping):
            out.append(InvalidCandidate(item, "not an object"))
            continue
        try:
            out.append(OracleMatch.model_validate(item).to_candidate())
        except ValidationError as e:
            out.append(InvalidCandidate(dict(item), _validation_reason(e)))
    return out


__all__ = ["extract_response_json_mapping", "parse_match_candidates"]
