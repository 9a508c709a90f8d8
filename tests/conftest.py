"""Pytest configuration for test isolation.

Configuration is read from the environment (``LEDGER_RECON_*`` and
``DATABASE_URL``), and a developer's shell or ``.env`` may set any of them.
The database client keeps a process-wide engine binding, and CLI runs install
a log handler on the package logger. An autouse fixture clears the variables,
disposes the engine and removes the handler around every test.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from ledger_recon.db.client import dispose_engine
from ledger_recon.logging_setup import reset_logging


@pytest.fixture(autouse=True)
def _isolate_env_engine_and_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("LEDGER_RECON_") or name in {"DATABASE_URL", "OPENAI_API_KEY"}:
            monkeypatch.delenv(name, raising=False)
    dispose_engine()
    yield
    dispose_engine()
    reset_logging()
