from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: recon_transactions
# ---------------------------


class ReconTransaction(Base):
    """One bank-feed or ledger record plus its link state.

    Both collections share the table; ``side`` tells them apart and
    ``record_id`` is unique per side. ``linked_counterpart_id`` holds the
    ``record_id`` of the row on the other side.
    """

    __tablename__ = "recon_transactions"

    # Integer (not BigInteger) so SQLite maps it to a rowid alias.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    side: Mapped[str] = mapped_column(String(8), nullable=False)
    record_id: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    kind: Mapped[str] = mapped_column(String(8), nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    linked_counterpart_id: Mapped[str | None] = mapped_column(String, nullable=True)
    currency_code: Mapped[str] = mapped_column(
        CHAR(3), nullable=False, server_default=text("'SAR'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("side", "record_id", name="uniq_recon_tx_side_record_id"),
        CheckConstraint("side IN ('bank', 'ledger')", name="ck_recon_tx_side"),
        CheckConstraint("kind IN ('CREDIT', 'DEBIT')", name="ck_recon_tx_kind"),
        CheckConstraint(
            "category IS NULL OR side = 'ledger'", name="ck_recon_tx_category_ledger_only"
        ),
    )


__all__ = ["Base", "ReconTransaction"]
