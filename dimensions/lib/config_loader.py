"""YAML configuration loader for dimension jobs.

A project file declares one calendar job and any number of snapshot
jobs. Each section is validated with a Pydantic model before anything
runs.

Example YAML (ecommerce.yaml):
    calendar:
      name: reporting_periods
      start_date: 2015-01-01
      end_date: 2030-12-31
      granularities: [Day, Week, Month, Quarter, Year]
      holidays: greek
      target_path: reporting/dim_reporting_periods.parquet

    snapshots:
      - name: addresses_hist
        source_path: ./extracts/addresses.csv
        target_path: historical/addresses_hist.parquet
        unique_key: id
        check_cols: [country, region, city, postal_code]
        invalidate_hard_deletes: true

Usage:
    from dimensions.lib.config_loader import load_project
    project = load_project("./ecommerce.yaml")
    project.snapshot("addresses_hist").to_snapshot_config()
"""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pydantic
import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from dimensions.lib.env import find_unresolved, load_env_file, resolve_env_vars
from dimensions.lib.errors import ConfigurationError
from dimensions.lib.holidays import HolidayTable, greek_public_holidays, load_holiday_table
from dimensions.lib.periods import DEFAULT_WEEKEND_DAYS, Granularity, parse_weekday
from dimensions.lib.settings import DimensionSettings
from dimensions.lib.snapshot import SnapshotConfig

logger = logging.getLogger(__name__)

__all__ = [
    "CalendarJobConfig",
    "ProjectConfig",
    "SnapshotJobConfig",
    "load_project",
    "validate_project",
]

HOLIDAY_PRESETS = ("greek", "none")


def _as_value_error(fn, value: Any) -> Any:
    # Pydantic only reports ValueError/AssertionError as field errors
    try:
        return fn(value)
    except ConfigurationError as e:
        raise ValueError(e.message) from e


class CalendarJobConfig(BaseModel):
    """Pydantic model for the reporting-period job.

    Example:
        >>> config = CalendarJobConfig(
        ...     start_date="2020-01-01",
        ...     end_date="2020-12-31",
        ...     target_path="./warehouse/dim_reporting_periods.parquet",
        ... )
        >>> config.week_start
        1
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="reporting_periods", min_length=1)
    start_date: date = Field(..., description="First date of the spine")
    end_date: date = Field(..., description="Last date of the spine, inclusive")
    granularities: List[str] = Field(
        default_factory=lambda: [g.value for g in Granularity],
        min_length=1,
    )
    week_start: int = Field(default=1, description="ISO weekday weeks start on")
    weekend_days: List[int] = Field(default_factory=lambda: sorted(DEFAULT_WEEKEND_DAYS))
    holidays: Union[str, List[Dict[str, Any]], None] = Field(
        default="greek",
        description="'greek', 'none', a YAML/CSV path, or inline {month, day, name} entries",
    )
    target_path: str = Field(..., min_length=1)

    @field_validator("granularities")
    @classmethod
    def validate_granularities(cls, v: List[str]) -> List[str]:
        return [_as_value_error(Granularity.parse, g).value for g in v]

    @field_validator("week_start", mode="before")
    @classmethod
    def validate_week_start(cls, v: Any) -> int:
        return _as_value_error(parse_weekday, v)

    @field_validator("weekend_days", mode="before")
    @classmethod
    def validate_weekend_days(cls, v: Any) -> List[int]:
        if not isinstance(v, (list, tuple)):
            v = [v]
        return sorted({_as_value_error(parse_weekday, d) for d in v})

    @model_validator(mode="after")
    def validate_range(self) -> "CalendarJobConfig":
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date {self.start_date} is after end_date {self.end_date}"
            )
        return self

    def holiday_table(self) -> Optional[HolidayTable]:
        """Build the holiday table this job flags anchors against."""
        if self.holidays is None:
            return None
        if isinstance(self.holidays, list):
            return HolidayTable.from_records(self.holidays)
        preset = self.holidays.strip().lower()
        if preset == "none":
            return None
        if preset == "greek":
            return greek_public_holidays()
        return load_holiday_table(self.holidays)


class SnapshotJobConfig(BaseModel):
    """Pydantic model for one snapshot (SCD2) job.

    Accepts check_cols or tracked_columns for the tracked set.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1, description="Job name, also the default entity")
    entity: Optional[str] = Field(default=None, description="Entity type being historized")
    source_path: str = Field(..., min_length=1, description="CSV or parquet extract")
    target_path: str = Field(..., min_length=1, description="History table (.parquet)")
    unique_key: str = Field(default="id", min_length=1)
    check_cols: List[str] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("check_cols", "tracked_columns"),
    )
    passthrough_columns: Optional[List[str]] = None
    invalidate_hard_deletes: bool = False
    allow_empty_extract: bool = False
    schedule: Optional[str] = Field(default=None, description="Cron expression, informational")

    @field_validator("target_path")
    @classmethod
    def validate_target_path(cls, v: str) -> str:
        if not v.lower().endswith(".parquet"):
            raise ValueError("target_path must be a .parquet file")
        return v

    @field_validator("source_path")
    @classmethod
    def validate_source_path(cls, v: str) -> str:
        if not v.lower().endswith((".csv", ".parquet")):
            raise ValueError("source_path must be a .csv or .parquet file")
        return v

    @property
    def entity_name(self) -> str:
        return self.entity or self.name

    def to_snapshot_config(self) -> SnapshotConfig:
        return SnapshotConfig(
            entity=self.entity_name,
            tracked_columns=self.check_cols,
            unique_key=self.unique_key,
            passthrough_columns=self.passthrough_columns,
            invalidate_hard_deletes=self.invalidate_hard_deletes,
            allow_empty_extract=self.allow_empty_extract,
        )


class ProjectConfig(BaseModel):
    """A whole project file: an optional calendar job plus snapshot jobs."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    calendar: Optional[CalendarJobConfig] = None
    snapshots: List[SnapshotJobConfig] = Field(default_factory=list)
    config_path: Optional[str] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def validate_jobs(self) -> "ProjectConfig":
        if self.calendar is None and not self.snapshots:
            raise ValueError("Configuration must have a 'calendar' or 'snapshots' section")
        names = [s.name for s in self.snapshots]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate snapshot names: {', '.join(duplicates)}")
        return self

    def snapshot(self, name: str) -> SnapshotJobConfig:
        for job in self.snapshots:
            if job.name == name:
                return job
        available = ", ".join(s.name for s in self.snapshots) or "(none)"
        raise ConfigurationError(
            f"No snapshot job named {name!r}. Available: {available}",
            field="name",
            value=name,
        )


def _resolve_path(path: str, config_dir: Path, warehouse_root: Path) -> str:
    """Resolve a relative path from the config file.

    Paths starting with "./" or "../" are resolved relative to the YAML
    config file. Other relative paths land under the warehouse root.
    Absolute paths are unchanged.
    """
    if not path or os.path.isabs(path):
        return path
    if path.startswith(("./", "../")):
        return str((config_dir / path).resolve())
    return str(warehouse_root / path)


def _resolve_paths(raw: Dict[str, Any], config_dir: Path, warehouse_root: Path) -> Dict[str, Any]:
    calendar = raw.get("calendar")
    if isinstance(calendar, dict):
        if isinstance(calendar.get("target_path"), str):
            calendar["target_path"] = _resolve_path(calendar["target_path"], config_dir, warehouse_root)
        holidays = calendar.get("holidays")
        if isinstance(holidays, str) and holidays.strip().lower() not in HOLIDAY_PRESETS:
            # Holiday files are inputs and live next to the config
            if not os.path.isabs(holidays):
                calendar["holidays"] = str((config_dir / holidays).resolve())

    for job in raw.get("snapshots") or []:
        if not isinstance(job, dict):
            continue
        for key in ("source_path", "target_path"):
            if isinstance(job.get(key), str):
                job[key] = _resolve_path(job[key], config_dir, warehouse_root)
    return raw


def _format_errors(error: pydantic.ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "(root)"
        messages.append(f"{location}: {item['msg']}")
    return messages


def load_project(
    config_path: Union[str, Path],
    settings: Optional[DimensionSettings] = None,
) -> ProjectConfig:
    """Load and validate a project YAML file.

    Args:
        config_path: Path to the YAML configuration file
        settings: Settings providing warehouse_root (read from the
            environment when omitted)

    Returns:
        Validated ProjectConfig with environment variables expanded and
        paths resolved

    Raises:
        ConfigurationError: If the file is missing, not valid YAML, or
            fails validation
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            field="config_path",
            value=str(config_path),
        )

    settings = settings or DimensionSettings()
    config_dir = config_path.parent.resolve()
    warehouse_root = Path(settings.warehouse_root)
    if not warehouse_root.is_absolute():
        warehouse_root = Path.cwd() / warehouse_root

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if not raw:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"{config_path} must contain a mapping with 'calendar' and/or 'snapshots'"
        )

    if load_env_file(config_dir / ".env"):
        logger.debug("Loaded %s", config_dir / ".env")
    raw = resolve_env_vars(raw)
    unresolved = find_unresolved(raw)
    if unresolved:
        raise ConfigurationError(
            f"Unset environment variables in {config_path}",
            details={f"error_{i + 1}": f"{key}: ${name}" for i, (key, name) in enumerate(unresolved)},
            suggestion=f"Export them, add them to {config_dir / '.env'}, or use ${{NAME:-default}}.",
        )
    raw = _resolve_paths(raw, config_dir, warehouse_root)

    try:
        project = ProjectConfig.model_validate(raw)
    except pydantic.ValidationError as e:
        issues = _format_errors(e)
        raise ConfigurationError(
            f"Invalid configuration in {config_path}",
            details={f"error_{i + 1}": issue for i, issue in enumerate(issues)},
            suggestion="Fix the fields listed above and re-run.",
        ) from e

    project.config_path = str(config_path)
    logger.debug(
        "Loaded %s: calendar=%s, %d snapshot jobs",
        config_path,
        project.calendar.name if project.calendar else None,
        len(project.snapshots),
    )
    return project


def validate_project(config_path: Union[str, Path]) -> List[str]:
    """Validate a project file without running anything.

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[str] = []
    try:
        project = load_project(config_path)
        if project.calendar is not None:
            project.calendar.holiday_table()
        for job in project.snapshots:
            job.to_snapshot_config()
    except ConfigurationError as e:
        errors.append(e.message)
        errors.extend(f"  {v}" for k, v in e.details.items() if k.startswith("error_"))
    return errors
