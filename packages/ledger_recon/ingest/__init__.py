"""CSV ingestion for bank-feed and ledger exports."""

from .utils import load_records_csv, load_store_from_csv

__all__ = ["load_records_csv", "load_store_from_csv"]
