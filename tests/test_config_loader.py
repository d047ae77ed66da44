"""Tests for the YAML project loader."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from dimensions.lib.config_loader import (
    CalendarJobConfig,
    SnapshotJobConfig,
    load_project,
    validate_project,
)
from dimensions.lib.errors import ConfigurationError
from dimensions.lib.holidays import HolidayTable


def write_yaml(tmp_path: Path, text: str, name: str = "project.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


SNAPSHOT_ONLY = """
snapshots:
  - name: addresses_hist
    source_path: {source}
    target_path: historical/addresses_hist.parquet
    tracked_columns: [city]
"""


class TestLoadProject:
    def test_loads_fixture_project(self, project_file, settings):
        project = load_project(project_file, settings)

        assert project.name == "test_project"
        assert project.calendar.granularities == ["Day", "Week", "Month"]
        assert project.calendar.start_date == date(2024, 12, 30)
        assert [s.name for s in project.snapshots] == ["addresses_hist"]
        assert project.config_path == str(project_file)

    def test_path_resolution(self, project_file, settings, tmp_path):
        project = load_project(project_file, settings)
        job = project.snapshot("addresses_hist")

        # ./ paths are relative to the config file
        assert job.source_path == str((tmp_path / "extracts" / "addresses.csv").resolve())
        # bare relative paths land under the warehouse root
        assert job.target_path == str(tmp_path / "warehouse" / "historical" / "addresses_hist.parquet")
        assert project.calendar.target_path == str(tmp_path / "warehouse" / "reporting" / "periods.parquet")

    def test_absolute_paths_unchanged(self, tmp_path, settings):
        source = tmp_path / "abs" / "addresses.csv"
        path = write_yaml(tmp_path, SNAPSHOT_ONLY.format(source=source))

        job = load_project(path, settings).snapshots[0]

        assert job.source_path == str(source)

    def test_env_vars_expanded(self, tmp_path, settings, monkeypatch):
        monkeypatch.setenv("EXTRACT_DIR", "/data/extracts")
        path = write_yaml(tmp_path, SNAPSHOT_ONLY.format(source="${EXTRACT_DIR}/addresses.csv"))

        job = load_project(path, settings).snapshots[0]

        assert job.source_path == "/data/extracts/addresses.csv"

    def test_project_dotenv_loaded(self, tmp_path, settings, monkeypatch):
        # registered so teardown removes what the .env file sets
        monkeypatch.setenv("EXTRACT_DIR", "unused")
        monkeypatch.delenv("EXTRACT_DIR")
        (tmp_path / ".env").write_text("EXTRACT_DIR=/from/dotenv\n", encoding="utf-8")
        path = write_yaml(tmp_path, SNAPSHOT_ONLY.format(source="${EXTRACT_DIR}/addresses.csv"))

        job = load_project(path, settings).snapshots[0]

        assert job.source_path == "/from/dotenv/addresses.csv"

    def test_tracked_columns_alias(self, tmp_path, settings):
        path = write_yaml(tmp_path, SNAPSHOT_ONLY.format(source="./a.csv"))

        job = load_project(path, settings).snapshots[0]

        assert job.check_cols == ["city"]
        assert job.entity_name == "addresses_hist"

    def test_warehouse_root_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DIMENSIONS_WAREHOUSE_ROOT", str(tmp_path / "wh"))
        path = write_yaml(tmp_path, SNAPSHOT_ONLY.format(source="./a.csv"))

        job = load_project(path).snapshots[0]

        assert job.target_path == str(tmp_path / "wh" / "historical" / "addresses_hist.parquet")

    def test_holiday_file_relative_to_config(self, tmp_path, settings):
        (tmp_path / "holidays.yaml").write_text(
            "holidays:\n  - {month: 3, day: 25, name: Independence Day}\n", encoding="utf-8"
        )
        path = write_yaml(
            tmp_path,
            """
calendar:
  start_date: 2020-01-01
  end_date: 2020-12-31
  holidays: holidays.yaml
  target_path: periods.parquet
""",
        )

        table = load_project(path, settings).calendar.holiday_table()

        assert table.lookup(date(2020, 3, 25)) == "Independence Day"
        assert len(table) == 1


class TestLoadProjectErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_project(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = write_yaml(tmp_path, "calendar: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_project(path)

    def test_empty_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Empty configuration"):
            load_project(write_yaml(tmp_path, ""))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_project(write_yaml(tmp_path, "- just\n- a list\n"))

    def test_unset_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("EXTRACT_DIR", raising=False)
        path = write_yaml(tmp_path, SNAPSHOT_ONLY.format(source="${EXTRACT_DIR}/addresses.csv"))

        with pytest.raises(ConfigurationError, match="Unset environment variables") as exc_info:
            load_project(path)

        assert exc_info.value.details["error_1"] == "snapshots.0.source_path: $EXTRACT_DIR"

    def test_no_jobs(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_project(write_yaml(tmp_path, "name: nothing\n"))

        assert "'calendar' or 'snapshots'" in str(exc_info.value)

    def test_field_errors_listed(self, tmp_path):
        path = write_yaml(
            tmp_path,
            """
snapshots:
  - name: addresses_hist
    source_path: ./a.txt
    target_path: hist.csv
    check_cols: []
""",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            load_project(path)

        details = list(exc_info.value.details.values())
        assert any("source_path" in d for d in details)
        assert any("target_path" in d for d in details)
        assert any("check_cols" in d for d in details)

    def test_unknown_key_rejected(self, tmp_path):
        path = write_yaml(
            tmp_path,
            """
calendar:
  start_date: 2020-01-01
  end_date: 2020-12-31
  target_path: periods.parquet
  fiscal_year_start: 7
""",
        )

        with pytest.raises(ConfigurationError):
            load_project(path)

    def test_unknown_snapshot_name(self, project_file, settings):
        project = load_project(project_file, settings)

        with pytest.raises(ConfigurationError, match="No snapshot job named 'orders_hist'"):
            project.snapshot("orders_hist")


class TestCalendarJobConfig:
    def test_defaults(self):
        config = CalendarJobConfig(start_date="2020-01-01", end_date="2020-01-31", target_path="p.parquet")

        assert config.granularities == ["Day", "Week", "Month", "Quarter", "Year"]
        assert config.week_start == 1
        assert config.weekend_days == [6, 7]
        assert len(config.holiday_table()) > 0

    def test_weekday_names(self):
        config = CalendarJobConfig(
            start_date="2020-01-01",
            end_date="2020-01-31",
            target_path="p.parquet",
            week_start="Sunday",
            weekend_days=["Fri", "Sat"],
        )

        assert config.week_start == 7
        assert config.weekend_days == [5, 6]

    def test_granularities_normalized(self):
        config = CalendarJobConfig(
            start_date="2020-01-01", end_date="2020-01-31", target_path="p.parquet",
            granularities=["month", "YEAR"],
        )

        assert config.granularities == ["Month", "Year"]

    def test_reversed_range(self):
        with pytest.raises(PydanticValidationError, match="after end_date"):
            CalendarJobConfig(start_date="2020-02-01", end_date="2020-01-01", target_path="p.parquet")

    def test_bad_granularity(self):
        with pytest.raises(PydanticValidationError, match="Unknown granularity"):
            CalendarJobConfig(
                start_date="2020-01-01", end_date="2020-01-31", target_path="p.parquet",
                granularities=["Fortnight"],
            )

    def test_holidays_none(self):
        config = CalendarJobConfig(
            start_date="2020-01-01", end_date="2020-01-31", target_path="p.parquet", holidays="none"
        )

        assert config.holiday_table() is None

    def test_inline_holidays(self):
        config = CalendarJobConfig(
            start_date="2020-01-01",
            end_date="2020-01-31",
            target_path="p.parquet",
            holidays=[{"month": 1, "day": 6, "name": "Epiphany"}],
        )

        table = config.holiday_table()

        assert isinstance(table, HolidayTable)
        assert table.lookup(date(2020, 1, 6)) == "Epiphany"


class TestSnapshotJobConfig:
    def test_to_snapshot_config(self):
        job = SnapshotJobConfig(
            name="addresses_hist",
            entity="addresses",
            source_path="a.csv",
            target_path="h.parquet",
            check_cols=["city", "region"],
            invalidate_hard_deletes=True,
        )

        config = job.to_snapshot_config()

        assert config.entity == "addresses"
        assert config.tracked_columns == ("city", "region")
        assert config.invalidate_hard_deletes is True

    def test_reserved_column_surfaces_as_configuration_error(self):
        job = SnapshotJobConfig(
            name="addresses_hist", source_path="a.csv", target_path="h.parquet", check_cols=["valid_to"]
        )

        with pytest.raises(ConfigurationError, match="Invalid snapshot configuration"):
            job.to_snapshot_config()


class TestValidateProject:
    def test_valid(self, project_file):
        assert validate_project(project_file) == []

    def test_reports_errors(self, tmp_path):
        path = write_yaml(
            tmp_path,
            """
snapshots:
  - name: addresses_hist
    source_path: ./a.csv
    target_path: h.parquet
    check_cols: [id]
""",
        )

        errors = validate_project(path)

        assert errors
        assert "Invalid snapshot configuration" in errors[0]

    def test_missing_file(self, tmp_path):
        errors = validate_project(tmp_path / "missing.yaml")

        assert len(errors) == 1
        assert "not found" in errors[0]

    def test_bad_inline_holiday_month(self, tmp_path):
        path = write_yaml(
            tmp_path,
            """
calendar:
  start_date: 2020-01-01
  end_date: 2020-01-31
  target_path: periods.parquet
  holidays:
    - {month: Dec, day: 25, name: Christmas Day}
""",
        )

        errors = validate_project(path)

        assert len(errors) == 1
        assert "numeric month and day" in errors[0]
