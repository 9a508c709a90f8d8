"""LLM-backed matching oracle using the OpenAI Responses API.

Public API:
    - :class:`OpenAIMatchingOracle`

One request per ``propose_matches`` call: both unlinked record sets are
embedded in the user content, the model answers with strict JSON, and the
parsed candidates are returned in response order. Retries cover HTTP 429 and
5xx only; a malformed response is terminal, while a malformed item is passed
through as an ``InvalidCandidate``. No client is created at import time.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI
from openai.types.responses import ResponseTextConfigParam

from . import prompting
from .errors import InvalidCandidate
from .logging_setup import get_logger
from .models import MatchCandidate, TransactionRecord
from .parsing import extract_response_json_mapping, parse_match_candidates
from .settings import ReconSettings

_JITTER_PCT: float = 0.20

_logger = get_logger("ledger_recon.openai_oracle")


def _is_retryable(exc: BaseException) -> bool:
    """Return True only for HTTP 429 and 5xx errors."""

    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


class OpenAIMatchingOracle:
    """Propose bank/ledger pairings with an OpenAI model.

    Parameters
    ----------
    settings:
        Run configuration (model, currency, date tolerance, attempts,
        backoff schedule, client timeout).
    client:
        Optional pre-built ``AsyncOpenAI``-compatible client. When omitted a
        client is created lazily on first use; it reads ``OPENAI_API_KEY``
        from the environment.
    """

    def __init__(self, settings: ReconSettings, *, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(timeout=self._settings.oracle_timeout_sec)
        return self._client

    async def _sleep_backoff(self, attempt_no: int) -> None:
        schedule = self._settings.backoff_schedule_sec
        if not schedule:
            return
        base = schedule[min(attempt_no - 1, len(schedule) - 1)]
        jitter = base * _JITTER_PCT
        await asyncio.sleep(max(0.0, base + random.uniform(-jitter, jitter)))

    async def propose_matches(
        self,
        bank_records: Sequence[TransactionRecord],
        ledger_records: Sequence[TransactionRecord],
    ) -> list[MatchCandidate | InvalidCandidate]:
        settings = self._settings
        user_content = prompting.build_user_content(
            prompting.serialize_records_to_json(bank_records),
            prompting.serialize_records_to_json(ledger_records),
            date_tolerance_days=settings.date_tolerance_days,
            currency=settings.currency,
        )
        text_cfg = ResponseTextConfigParam(format=prompting.build_response_format())
        client = self._get_client()

        _logger.info(
            "oracle:request model=%s bank=%d ledger=%d",
            settings.model,
            len(bank_records),
            len(ledger_records),
        )
        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = await client.responses.create(
                    model=settings.model,
                    instructions=prompting.build_system_instructions(),
                    input=user_content,
                    text=text_cfg,
                )
                candidates = parse_match_candidates(extract_response_json_mapping(resp))
            except Exception as e:  # noqa: BLE001
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= settings.max_attempts or not _is_retryable(e):
                    _logger.error(
                        "oracle:failed_terminal attempt=%d latency_ms=%.2f error=%s",
                        attempt,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    raise
                _logger.warning(
                    "oracle:retry attempt=%d latency_ms=%.2f error=%s",
                    attempt,
                    dt_ms,
                    e.__class__.__name__,
                )
                await self._sleep_backoff(attempt)
                attempt += 1
                continue

            invalid = sum(1 for c in candidates if isinstance(c, InvalidCandidate))
            _logger.info(
                "oracle:done proposed=%d invalid=%d latency_ms=%.2f",
                len(candidates) - invalid,
                invalid,
                (time.perf_counter() - t0) * 1000.0,
            )
            return candidates


__all__ = ["OpenAIMatchingOracle"]
