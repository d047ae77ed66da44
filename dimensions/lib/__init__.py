"""Dimension library modules.

This package contains the calendar generator, the SCD Type 2 snapshot
engine, and the configuration, logging and I/O utilities around them.
"""

from dimensions.lib.errors import (
    ConfigurationError,
    DimensionError,
    FingerprintComputationError,
    HierarchyError,
    SnapshotCommitError,
    SnapshotOrderingError,
    SourceExtractError,
    ValidationError,
)
from dimensions.lib.spine import coerce_date, date_spine, truncate
from dimensions.lib.holidays import (
    GREEK_PUBLIC_HOLIDAYS,
    HolidayRule,
    HolidayTable,
    greek_public_holidays,
    load_holiday_table,
)
from dimensions.lib.periods import (
    Granularity,
    ReportingPeriodRow,
    generate_periods,
    periods_to_frame,
)
from dimensions.lib.fingerprint import compute_fingerprint
from dimensions.lib.snapshot import (
    EntityState,
    Expiration,
    ExpirationReason,
    HistorizedRecord,
    SnapshotConfig,
    SnapshotPlan,
    apply_plan,
    apply_snapshot,
    plan_snapshot,
)
from dimensions.lib.store import (
    HistoryStore,
    InMemoryHistoryStore,
    ParquetHistoryStore,
    frame_to_history,
    history_to_frame,
)
from dimensions.lib.curate import as_of_view, current_view, history_table, version_counts
from dimensions.lib.quality import check_history_invariants, validate_periods
from dimensions.lib.hierarchy import HierarchyRow, build_category_hierarchy
from dimensions.lib.env import expand_env_vars, load_env_file
from dimensions.lib.logging import get_job_logger, setup_logging
from dimensions.lib.observability import JobMetrics
from dimensions.lib.settings import DimensionSettings
from dimensions.lib.config_loader import (
    CalendarJobConfig,
    ProjectConfig,
    SnapshotJobConfig,
    load_project,
)
from dimensions.lib.jobs import CalendarJob, SnapshotJob
from dimensions.lib.runner import JobResult, run_project, timed_job

__all__ = [
    # Errors
    "ConfigurationError",
    "DimensionError",
    "FingerprintComputationError",
    "HierarchyError",
    "SnapshotCommitError",
    "SnapshotOrderingError",
    "SourceExtractError",
    "ValidationError",
    # Calendar
    "GREEK_PUBLIC_HOLIDAYS",
    "Granularity",
    "HolidayRule",
    "HolidayTable",
    "ReportingPeriodRow",
    "coerce_date",
    "date_spine",
    "generate_periods",
    "greek_public_holidays",
    "load_holiday_table",
    "periods_to_frame",
    "truncate",
    # Snapshots
    "EntityState",
    "Expiration",
    "ExpirationReason",
    "HistorizedRecord",
    "SnapshotConfig",
    "SnapshotPlan",
    "apply_plan",
    "apply_snapshot",
    "compute_fingerprint",
    "plan_snapshot",
    # Storage
    "HistoryStore",
    "InMemoryHistoryStore",
    "ParquetHistoryStore",
    "frame_to_history",
    "history_to_frame",
    # Curate
    "as_of_view",
    "current_view",
    "history_table",
    "version_counts",
    # Quality
    "check_history_invariants",
    "validate_periods",
    # Hierarchy
    "HierarchyRow",
    "build_category_hierarchy",
    # Environment / settings / logging
    "DimensionSettings",
    "JobMetrics",
    "expand_env_vars",
    "get_job_logger",
    "load_env_file",
    "setup_logging",
    # Jobs
    "CalendarJob",
    "CalendarJobConfig",
    "JobResult",
    "ProjectConfig",
    "SnapshotJob",
    "SnapshotJobConfig",
    "load_project",
    "run_project",
    "timed_job",
]
