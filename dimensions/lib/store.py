"""Storage for historized tables.

A HistoryStore owns every write to one entity type's history. Commits are
all-or-nothing: the complete new table is built and checked in memory,
then swapped in with a single replace. If anything fails the previous
table is left exactly as it was.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from dimensions.lib.errors import SnapshotCommitError
from dimensions.lib.io import WriteMetadata, write_frame
from dimensions.lib.quality import check_history_invariants
from dimensions.lib.snapshot import (
    RESERVED_COLUMNS,
    HistorizedRecord,
    SnapshotPlan,
    apply_plan,
)

logger = logging.getLogger(__name__)

__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "ParquetHistoryStore",
    "history_to_frame",
    "frame_to_history",
]

TIMESTAMP_COLUMNS = ("valid_from", "valid_to", "updated_at")


def history_to_frame(records: Iterable[HistorizedRecord], unique_key: str) -> pd.DataFrame:
    """Flatten history records into a DataFrame.

    Column order: unique key, attributes in first-seen order, then the
    bookkeeping columns. Timestamp columns are datetime64 with NaT for
    open versions.
    """
    records = list(records)
    attribute_columns: List[str] = []
    for record in records:
        for column in record.attributes:
            if column not in attribute_columns:
                attribute_columns.append(column)

    columns = [unique_key, *attribute_columns, *RESERVED_COLUMNS]
    frame = pd.DataFrame([r.to_row(unique_key) for r in records], columns=columns)
    for column in TIMESTAMP_COLUMNS:
        frame[column] = pd.to_datetime(frame[column])
    return frame


def frame_to_history(frame: pd.DataFrame, unique_key: str) -> List[HistorizedRecord]:
    """Rebuild history records from a DataFrame written by history_to_frame."""
    missing = [c for c in (unique_key, *RESERVED_COLUMNS) if c not in frame.columns]
    if missing:
        raise SnapshotCommitError(
            f"History table is missing columns: {', '.join(missing)}",
            suggestion="The target does not look like a history table written by this library.",
        )
    rows = frame.astype(object).where(frame.notna(), None).to_dict("records")
    return [HistorizedRecord.from_row(row, unique_key) for row in rows]


class HistoryStore(ABC):
    """Abstract base for history tables.

    Subclasses implement load() and _replace(); commit() is shared so every
    backend gets the same validation and atomicity contract.
    """

    unique_key: str = "id"

    @property
    @abstractmethod
    def target(self) -> str:
        """Human-readable location of the table (for logs and errors)."""

    @abstractmethod
    def load(self) -> List[HistorizedRecord]:
        """Return every stored version (empty list if nothing stored yet)."""

    @abstractmethod
    def _replace(self, records: List[HistorizedRecord], plan: SnapshotPlan) -> None:
        """Atomically replace the stored table with records."""

    def commit(self, plan: SnapshotPlan) -> List[HistorizedRecord]:
        """Apply a plan to the stored history, all or nothing.

        Returns:
            The new full history

        Raises:
            SnapshotCommitError: If the plan does not apply cleanly, the
                result breaks an SCD2 invariant, or the write fails
        """
        history = self.load()
        new_history = apply_plan(history, plan)

        issues = check_history_invariants(new_history)
        if issues:
            raise SnapshotCommitError(
                f"Refusing to commit {plan.entity}: result breaks history invariants",
                target=self.target,
                details={f"issue_{i + 1}": issue for i, issue in enumerate(issues[:10])},
                entity=plan.entity,
            )

        try:
            self._replace(new_history, plan)
        except SnapshotCommitError:
            raise
        except (OSError, ValueError, TypeError) as e:
            raise SnapshotCommitError(
                f"Writing {plan.entity} history failed; previous table kept",
                target=self.target,
                cause=e,
                entity=plan.entity,
            ) from e

        logger.debug("Committed %d versions to %s", len(new_history), self.target)
        return new_history

    def current(self) -> List[HistorizedRecord]:
        """Open versions only: the current-row projection."""
        return [r for r in self.load() if r.is_current]


class InMemoryHistoryStore(HistoryStore):
    """History kept in a Python list; useful for tests and dry runs."""

    def __init__(
        self,
        records: Optional[Iterable[HistorizedRecord]] = None,
        *,
        unique_key: str = "id",
    ):
        self.unique_key = unique_key
        self._records: List[HistorizedRecord] = list(records or [])
        self.commits = 0

    @property
    def target(self) -> str:
        return "memory"

    def load(self) -> List[HistorizedRecord]:
        return list(self._records)

    def _replace(self, records: List[HistorizedRecord], plan: SnapshotPlan) -> None:
        self._records = list(records)
        self.commits += 1

    def to_frame(self) -> pd.DataFrame:
        return history_to_frame(self._records, self.unique_key)


class ParquetHistoryStore(HistoryStore):
    """History kept as a single parquet file.

    Example:
        store = ParquetHistoryStore("./warehouse/historical/addresses_hist.parquet")
        plan = apply_snapshot(store, extract, config, as_of)
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        unique_key: str = "id",
        job_name: Optional[str] = None,
    ):
        self.path = Path(path)
        if self.path.suffix.lower() != ".parquet":
            raise ValueError(f"History tables are stored as .parquet files, got {self.path}")
        self.unique_key = unique_key
        self.job_name = job_name
        self.last_write: Optional[WriteMetadata] = None

    @property
    def target(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[HistorizedRecord]:
        if not self.path.exists():
            return []
        frame = pd.read_parquet(self.path)
        return frame_to_history(frame, self.unique_key)

    def read_frame(self) -> pd.DataFrame:
        """Read the stored table as a DataFrame (empty if nothing stored)."""
        if not self.path.exists():
            return history_to_frame([], self.unique_key)
        return pd.read_parquet(self.path)

    def _replace(self, records: List[HistorizedRecord], plan: SnapshotPlan) -> None:
        frame = history_to_frame(records, self.unique_key)
        extra: Dict[str, Any] = {
            "entity": plan.entity,
            "as_of": plan.as_of.isoformat(),
            "unique_key": self.unique_key,
            "current_rows": sum(1 for r in records if r.is_current),
            **plan.summary(),
        }
        self.last_write = write_frame(frame, self.path, job_name=self.job_name, extra=extra)
