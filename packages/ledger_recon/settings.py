"""Explicit runtime configuration for reconciliation runs.

``ReconSettings`` is built once by the composition root (the CLI, after
``python-dotenv`` has loaded ``.env``) and passed by reference to the
components that need it. Library modules never read these environment
variables themselves.

Environment variables
---------------------
- ``LEDGER_RECON_MODEL``: OpenAI model name (default ``gpt-5``).
- ``LEDGER_RECON_CURRENCY``: ISO currency code for display/persistence
  (default ``SAR``).
- ``LEDGER_RECON_ORACLE_TIMEOUT``: seconds before an oracle call is abandoned;
  ``0`` or negative disables the timeout (default ``60``).
- ``LEDGER_RECON_MAX_ATTEMPTS``: OpenAI attempts per call, including the
  first (default ``3``).
- ``LEDGER_RECON_DATE_TOLERANCE_DAYS``: date window for matching (default ``3``).
- ``LEDGER_RECON_AMOUNT_TOLERANCE``: absolute amount tolerance (default ``0.01``).
- ``LEDGER_RECON_AUTO_CONFIRM``: confidence in [0,1] at or above which the
  review loop confirms without asking (unset = off).
- ``DATABASE_URL``: SQLAlchemy URL for persistence (optional).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation

_DEFAULT_MODEL = "gpt-5"
_DEFAULT_CURRENCY = "SAR"
_DEFAULT_TIMEOUT_SEC = 60.0


@dataclass(frozen=True, slots=True)
class ReconSettings:
    model: str = _DEFAULT_MODEL
    currency: str = _DEFAULT_CURRENCY
    oracle_timeout_sec: float | None = _DEFAULT_TIMEOUT_SEC
    max_attempts: int = 3
    backoff_schedule_sec: tuple[float, ...] = (0.5, 2.0)
    date_tolerance_days: int = 3
    amount_tolerance: Decimal = Decimal("0.01")
    auto_confirm_confidence: float | None = None
    database_url: str | None = None

    def __post_init__(self) -> None:
        if not self.model.strip():
            raise ValueError("ReconSettings.model must be non-empty")
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"ReconSettings.currency must be a 3-letter code: {self.currency!r}")
        if self.max_attempts < 1:
            raise ValueError("ReconSettings.max_attempts must be >= 1")
        if self.date_tolerance_days < 0:
            raise ValueError("ReconSettings.date_tolerance_days must be >= 0")
        if self.amount_tolerance < 0:
            raise ValueError("ReconSettings.amount_tolerance must be >= 0")
        if self.auto_confirm_confidence is not None and not (
            0.0 <= self.auto_confirm_confidence <= 1.0
        ):
            raise ValueError("ReconSettings.auto_confirm_confidence must be within [0,1]")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ReconSettings:
        """Build settings from environment variables, falling back to defaults."""

        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            raw = env.get(name)
            if raw is None or not raw.strip():
                return None
            return raw.strip()

        def _int(name: str, default: int) -> int:
            raw = _get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError as e:
                raise ValueError(f"{name} must be an integer, got {raw!r}") from e

        def _float(name: str) -> float | None:
            raw = _get(name)
            if raw is None:
                return None
            try:
                return float(raw)
            except ValueError as e:
                raise ValueError(f"{name} must be a number, got {raw!r}") from e

        timeout = _float("LEDGER_RECON_ORACLE_TIMEOUT")
        if timeout is None:
            timeout = _DEFAULT_TIMEOUT_SEC
        elif timeout <= 0:
            timeout = None

        tolerance_raw = _get("LEDGER_RECON_AMOUNT_TOLERANCE")
        try:
            tolerance = Decimal(tolerance_raw) if tolerance_raw else Decimal("0.01")
        except InvalidOperation as e:
            raise ValueError(
                f"LEDGER_RECON_AMOUNT_TOLERANCE must be a decimal, got {tolerance_raw!r}"
            ) from e

        return cls(
            model=_get("LEDGER_RECON_MODEL") or _DEFAULT_MODEL,
            currency=(_get("LEDGER_RECON_CURRENCY") or _DEFAULT_CURRENCY).upper(),
            oracle_timeout_sec=timeout,
            max_attempts=_int("LEDGER_RECON_MAX_ATTEMPTS", 3),
            date_tolerance_days=_int("LEDGER_RECON_DATE_TOLERANCE_DAYS", 3),
            amount_tolerance=tolerance,
            auto_confirm_confidence=_float("LEDGER_RECON_AUTO_CONFIRM"),
            database_url=_get("DATABASE_URL"),
        )

    def with_overrides(self, **changes: object) -> ReconSettings:
        """Return a copy with non-``None`` overrides applied (CLI flags)."""

        return replace(self, **{k: v for k, v in changes.items() if v is not None})


__all__ = ["ReconSettings"]
