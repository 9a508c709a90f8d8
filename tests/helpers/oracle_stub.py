"""Scriptable matching oracle for engine and CLI tests.

``StubOracle`` returns queued responses in order (the last one repeats), or
delegates to a ``propose`` callable. Every call's inputs are recorded so tests
can assert on what the engine offered. An optional ``gate`` event holds the
call open until the test releases it, which lets tests observe the in-flight
state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

from ledger_recon.models import TransactionRecord


class StubOracle:
    def __init__(
        self,
        *responses: Sequence[Any],
        propose: Callable[[Sequence[TransactionRecord], Sequence[TransactionRecord]], Sequence[Any]]
        | None = None,
        error: BaseException | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._responses = list(responses)
        self._propose = propose
        self.error = error
        self.gate = gate
        self.calls: list[tuple[list[str], list[str]]] = []
        self.started = asyncio.Event() if gate is not None else None

    async def propose_matches(
        self,
        bank_records: Sequence[TransactionRecord],
        ledger_records: Sequence[TransactionRecord],
    ) -> Sequence[Any]:
        self.calls.append(([r.id for r in bank_records], [r.id for r in ledger_records]))
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self._propose is not None:
            return list(self._propose(bank_records, ledger_records))
        if not self._responses:
            return []
        if len(self._responses) > 1:
            return list(self._responses.pop(0))
        return list(self._responses[0])
