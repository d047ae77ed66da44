"""Reporting-period and slowly changing dimensions for a dimensional warehouse.

This package generates the calendar dimension and keeps SCD Type 2
history of mutable source entities from point-in-time extracts.

Usage:
    python -m dimensions periods --start 2015-01-01 --end 2030-12-31 --output ./periods.parquet
    python -m dimensions snapshot ./ecommerce.yaml --name addresses_hist
"""

from dimensions.lib.periods import Granularity, generate_periods
from dimensions.lib.snapshot import SnapshotConfig, apply_snapshot, plan_snapshot
from dimensions.lib.store import InMemoryHistoryStore, ParquetHistoryStore

__all__ = [
    "Granularity",
    "InMemoryHistoryStore",
    "ParquetHistoryStore",
    "SnapshotConfig",
    "apply_snapshot",
    "generate_periods",
    "plan_snapshot",
]

__version__ = "0.1.0"
