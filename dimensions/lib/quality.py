"""Data quality checks for generated dimensions.

These are structural rules (keys, uniqueness, interval shape), not
business logic:

- reporting periods: non-null, unique (granularity, anchor_date)
- history: per id, at most one open version and non-overlapping validity
  intervals (a gap only follows a hard delete)

Uses Pandera for the DataFrame-level checks.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Dict, Iterable, List

import pandas as pd
import pandera as pa
from pandera import Check, Column, DataFrameSchema

from dimensions.lib.errors import ValidationError

if TYPE_CHECKING:
    from dimensions.lib.snapshot import HistorizedRecord

logger = logging.getLogger(__name__)

__all__ = [
    "check_history_invariants",
    "reporting_period_schema",
    "validate_periods",
]

GRANULARITY_VALUES = ["Day", "Week", "Month", "Quarter", "Year"]


def reporting_period_schema() -> DataFrameSchema:
    """Pandera schema for the reporting-period table."""
    return DataFrameSchema(
        {
            "granularity": Column(str, Check.isin(GRANULARITY_VALUES), nullable=False, coerce=True),
            "anchor_date": Column("datetime64[ns]", nullable=False, coerce=True),
            "calendar_year": Column(int, nullable=False),
            "calendar_quarter": Column(int, Check.in_range(1, 4), nullable=False),
            "calendar_month": Column(int, Check.in_range(1, 12), nullable=False),
            "iso_week": Column(int, Check.in_range(1, 53), nullable=False),
            "day_of_week": Column(int, Check.in_range(1, 7), nullable=False),
            "is_weekend": Column(bool, nullable=False),
            "is_holiday": Column(bool, nullable=False),
            "holiday_name": Column(nullable=True),
        },
        unique=["granularity", "anchor_date"],
        strict=False,
    )


def validate_periods(frame: pd.DataFrame) -> pd.DataFrame:
    """Validate a reporting-period frame, collecting every failure.

    Raises:
        ValidationError: If any schema check fails
    """
    try:
        return reporting_period_schema().validate(frame, lazy=True)
    except pa.errors.SchemaErrors as e:
        failures = e.failure_cases
        issues = [
            f"{row.get('column') or 'table'}: {row.get('check')} failed for {row.get('failure_case')!r}"
            for row in failures.head(20).to_dict("records")
        ]
        raise ValidationError(
            "Reporting periods failed validation",
            issues=issues,
            details={"failure_count": len(failures)},
        ) from e


def check_history_invariants(records: Iterable["HistorizedRecord"]) -> List[str]:
    """Check the SCD2 interval invariants of a history table.

    Returns:
        List of human-readable issues (empty if the history is consistent)
    """
    by_key: Dict[Any, List["HistorizedRecord"]] = defaultdict(list)
    seen_scd_ids: Dict[str, Any] = {}
    issues: List[str] = []

    for record in records:
        by_key[record.key].append(record)
        if record.scd_id in seen_scd_ids:
            issues.append(f"scd_id {record.scd_id[:12]} appears more than once")
        seen_scd_ids[record.scd_id] = record.key

    for key, versions in by_key.items():
        versions.sort(key=lambda r: r.valid_from)

        open_count = sum(1 for v in versions if v.valid_to is None)
        if open_count > 1:
            issues.append(f"id {key!r} has {open_count} open versions")

        for v in versions:
            if v.valid_to is not None and v.valid_to <= v.valid_from:
                issues.append(
                    f"id {key!r} version from {v.valid_from.isoformat()} "
                    f"closes at or before it opens ({v.valid_to.isoformat()})"
                )

        for earlier, later in zip(versions, versions[1:]):
            if earlier.valid_to is None:
                issues.append(
                    f"id {key!r} has a version after its open version "
                    f"({later.valid_from.isoformat()})"
                )
            elif earlier.valid_to > later.valid_from:
                issues.append(
                    f"id {key!r} versions overlap: {earlier.valid_to.isoformat()} "
                    f"> {later.valid_from.isoformat()}"
                )

    if issues:
        logger.debug("History check found %d issues", len(issues))
    return issues
