"""Runnable dimension jobs.

CalendarJob builds the reporting-period table; SnapshotJob applies one
source extract to a historized table. Both validate before they write
and write atomically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd

from dimensions.lib.config_loader import CalendarJobConfig, SnapshotJobConfig
from dimensions.lib import curate
from dimensions.lib.hierarchy import build_category_hierarchy, hierarchy_to_frame
from dimensions.lib.io import WriteMetadata, read_extract, write_frame
from dimensions.lib.logging import get_job_logger
from dimensions.lib.observability import JobMetrics
from dimensions.lib.periods import generate_periods, periods_to_frame
from dimensions.lib.quality import validate_periods
from dimensions.lib.snapshot import apply_plan, coerce_timestamp, plan_snapshot
from dimensions.lib.store import ParquetHistoryStore, history_to_frame

__all__ = ["CalendarJob", "SnapshotJob", "build_hierarchy_file"]


class CalendarJob:
    """Generate, validate and write the reporting-period dimension.

    Example:
        job = CalendarJob(project.calendar)
        result = job.run()
        print(result["row_count"])
    """

    def __init__(self, config: CalendarJobConfig):
        self.config = config
        self.logger = get_job_logger(__name__, job=config.name, entity="reporting_periods")

    def build(self) -> pd.DataFrame:
        """Generate the validated period table without writing it."""
        rows = generate_periods(
            self.config.start_date,
            self.config.end_date,
            self.config.granularities,
            self.config.holiday_table(),
            week_start=self.config.week_start,
            weekend_days=self.config.weekend_days,
        )
        return validate_periods(periods_to_frame(rows))

    def run(self, *, dry_run: bool = False) -> Dict[str, Any]:
        metrics = JobMetrics(self.config.name, entity="reporting_periods")
        self.logger.info(
            "Generating periods %s to %s (%s)",
            self.config.start_date,
            self.config.end_date,
            ", ".join(self.config.granularities),
        )

        with metrics.time_phase("generate"):
            frame = self.build()
        metrics.record("row_count", len(frame), unit="rows")

        metadata: Optional[WriteMetadata] = None
        if dry_run:
            self.logger.info("[DRY RUN] Would write %d rows to %s", len(frame), self.config.target_path)
        else:
            with metrics.time_phase("write"):
                metadata = write_frame(
                    frame,
                    self.config.target_path,
                    job_name=self.config.name,
                    extra={
                        "start_date": self.config.start_date.isoformat(),
                        "end_date": self.config.end_date.isoformat(),
                        "granularities": list(self.config.granularities),
                    },
                )

        self.logger.metric("row_count", len(frame), unit="rows")
        return {
            "job": self.config.name,
            "row_count": len(frame),
            "target": self.config.target_path,
            "dry_run": dry_run,
            "sha256": metadata.sha256 if metadata else None,
            "metrics": metrics.summary(),
        }


class SnapshotJob:
    """Apply a point-in-time extract to one entity's history table.

    Example:
        job = SnapshotJob(project.snapshot("addresses_hist"))
        result = job.run(as_of="2025-01-15T02:00:00")
        print(result["inserts"], result["expirations"])
    """

    def __init__(self, config: SnapshotJobConfig):
        self.config = config
        self.snapshot_config = config.to_snapshot_config()
        self.store = ParquetHistoryStore(
            config.target_path,
            unique_key=config.unique_key,
            job_name=config.name,
        )
        self.logger = get_job_logger(__name__, job=config.name, entity=config.entity_name)

    def run(self, as_of: Any = None, dry_run: bool = False) -> Dict[str, Any]:
        """Plan and commit one snapshot run.

        Args:
            as_of: Effective timestamp (current UTC time when omitted)
            dry_run: Plan only; the stored history is not touched

        Returns:
            Counts of inserts, expirations, unchanged and stale ids plus
            the resulting history and current row counts
        """
        as_of_ts = coerce_timestamp(as_of if as_of is not None else datetime.now(timezone.utc))
        metrics = JobMetrics(self.config.name, entity=self.config.entity_name)
        self.logger.set_context(as_of=as_of_ts.isoformat())
        self.logger.info("Snapshot of %s as of %s", self.config.source_path, as_of_ts.isoformat())

        with metrics.time_phase("read"):
            extract = read_extract(self.config.source_path, typed_columns=[self.config.unique_key])
            history = self.store.load()
        metrics.record("source_rows", len(extract), unit="rows")

        with metrics.time_phase("plan"):
            plan = plan_snapshot(history, extract, self.snapshot_config, as_of_ts)

        if dry_run:
            new_history = apply_plan(history, plan)
            self.logger.info("[DRY RUN] %s", plan.summary())
        elif plan.is_empty:
            new_history = history
            self.logger.info("No changes; %s left untouched", self.store.target)
        else:
            with metrics.time_phase("commit"):
                new_history = self.store.commit(plan)

        current_rows = sum(1 for r in new_history if r.is_current)
        for name, value in (
            ("inserts", len(plan.inserts)),
            ("expirations", len(plan.expirations)),
            ("unchanged", plan.unchanged),
            ("history_rows", len(new_history)),
        ):
            metrics.record(name, value, unit="rows")
            self.logger.metric(name, value, unit="rows")

        return {
            **plan.summary(),
            "job": self.config.name,
            "target": self.store.target,
            "dry_run": dry_run,
            "committed": not dry_run and not plan.is_empty,
            "history_rows": len(new_history),
            "current_rows": current_rows,
            "metrics": metrics.summary(),
        }

    def current_view(self) -> pd.DataFrame:
        """Current rows of the history table (valid_to is null)."""
        if not self.store.exists():
            return history_to_frame([], self.config.unique_key)
        t = curate.read_history(self.store.target)
        return curate.current_view(t).order_by(self.config.unique_key).execute()

    def write_current(self, output: Union[str, Path]) -> WriteMetadata:
        """Materialize the current view to a parquet or CSV file."""
        frame = self.current_view()
        return write_frame(
            frame,
            output,
            job_name=f"{self.config.name}_current",
            source_path=self.store.target,
        )


def build_hierarchy_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    *,
    strict: bool = False,
) -> WriteMetadata:
    """Flatten a category extract into the hierarchy table and write it."""
    logger = get_job_logger(__name__, job="category_hierarchy", entity="categories")
    categories = read_extract(input_path)
    rows = build_category_hierarchy(categories, strict=strict)
    logger.info("Flattened %d of %d categories", len(rows), len(categories))
    return write_frame(
        hierarchy_to_frame(rows),
        output_path,
        job_name="category_hierarchy",
        source_path=str(input_path),
    )
