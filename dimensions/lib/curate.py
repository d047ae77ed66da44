"""Read-only projections over historized tables.

These functions provide the Ibis expressions downstream consumers use to
read a history table. None of them write; the snapshot engine is the only
writer of history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Union

import ibis
import pandas as pd

from dimensions.lib.snapshot import HistorizedRecord, coerce_timestamp
from dimensions.lib.store import history_to_frame

__all__ = [
    "as_of_view",
    "current_view",
    "history_table",
    "read_history",
    "version_counts",
]


def history_table(records: Iterable[HistorizedRecord], unique_key: str = "id") -> ibis.Table:
    """Wrap history records in an in-memory Ibis table.

    Example:
        >>> t = history_table(store.load())
        >>> current_view(t).execute()
    """
    return ibis.memtable(history_to_frame(records, unique_key))


def read_history(path: str) -> ibis.Table:
    """Read a parquet history table through DuckDB."""
    con = ibis.duckdb.connect()
    return con.read_parquet(path)


def current_view(
    t: ibis.Table,
    *,
    valid_to_name: str = "valid_to",
) -> ibis.Table:
    """Keep only the open version of each id (valid_to IS NULL).

    Args:
        t: History table
        valid_to_name: Name of the valid_to column

    Returns:
        Table with exactly one row per id still present at the source
        (or left stale-but-current)
    """
    return t.filter(t[valid_to_name].isnull())


def as_of_view(
    t: ibis.Table,
    ts: Union[str, datetime, pd.Timestamp, Any],
    *,
    valid_from_name: str = "valid_from",
    valid_to_name: str = "valid_to",
) -> ibis.Table:
    """Versions that were in effect at a point in time.

    A version is in effect at ts when valid_from <= ts < valid_to, with an
    open valid_to treated as infinitely far in the future.
    """
    moment = ibis.literal(coerce_timestamp(ts, field="ts"))
    return t.filter(
        (t[valid_from_name] <= moment)
        & (t[valid_to_name].isnull() | (moment < t[valid_to_name]))
    )


def version_counts(
    t: ibis.Table,
    unique_key: str = "id",
    *,
    count_name: str = "versions",
) -> ibis.Table:
    """Number of versions recorded per id."""
    return t.group_by(unique_key).aggregate(**{count_name: t.count()})
