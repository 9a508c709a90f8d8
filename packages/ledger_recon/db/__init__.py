"""db: SQLAlchemy storage for reconciliation sessions.

Public exports
--------------
- ``Base`` and ``metadata``
- ORM model ``ReconTransaction``
- ``create_schema`` and ``session_scope`` from :mod:`ledger_recon.db.client`
"""

from __future__ import annotations

from .client import create_schema, session_scope
from .models import Base, ReconTransaction

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "ReconTransaction",
    "create_schema",
    "session_scope",
]
