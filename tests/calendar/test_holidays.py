"""Tests for the fixed-date holiday table."""

from __future__ import annotations

from datetime import date

import pytest

from dimensions.lib.errors import ConfigurationError
from dimensions.lib.holidays import (
    GREEK_PUBLIC_HOLIDAYS,
    HolidayRule,
    HolidayTable,
    greek_public_holidays,
    load_holiday_table,
)


class TestHolidayRule:
    def test_leap_day_is_accepted(self):
        """29 February is a valid fixed date (it matches in leap years only)."""
        table = HolidayTable([HolidayRule(2, 29, "Leap Day")])

        assert table.lookup(date(2024, 2, 29)) == "Leap Day"
        assert date(2023, 2, 28) not in table

    def test_impossible_date_rejected(self):
        with pytest.raises(ConfigurationError, match="Invalid holiday date"):
            HolidayRule(2, 30, "Nope")

    def test_blank_name_rejected(self):
        with pytest.raises(ConfigurationError, match="has no name"):
            HolidayRule(5, 1, "  ")


class TestHolidayTable:
    def test_lookup_ignores_year(self):
        table = greek_public_holidays()

        assert table.lookup(date(1999, 12, 25)) == "Christmas Day"
        assert table.lookup(date(2099, 12, 25)) == "Christmas Day"
        assert table.lookup(date(2099, 12, 27)) is None

    def test_duplicate_day_rejected(self):
        with pytest.raises(ConfigurationError, match="Two holidays"):
            HolidayTable([HolidayRule(1, 1, "A"), HolidayRule(1, 1, "B")])

    def test_iterates_in_calendar_order(self):
        table = HolidayTable([HolidayRule(12, 25, "X"), HolidayRule(1, 6, "E")])

        assert [r.key for r in table] == [(1, 6), (12, 25)]

    def test_greek_table_size(self):
        assert len(greek_public_holidays()) == len(GREEK_PUBLIC_HOLIDAYS)

    def test_from_records_missing_keys(self):
        with pytest.raises(ConfigurationError, match="missing day"):
            HolidayTable.from_records([{"month": 1, "name": "New Year"}])

    def test_from_records_month_name(self):
        with pytest.raises(ConfigurationError, match="numeric month and day"):
            HolidayTable.from_records([{"month": "Dec", "day": 25, "name": "Christmas Day"}])

    def test_from_records_entry_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            HolidayTable.from_records(["Christmas Day"])


class TestLoadHolidayTable:
    def test_yaml_with_holidays_key(self, tmp_path):
        path = tmp_path / "holidays.yaml"
        path.write_text(
            "holidays:\n"
            "  - {month: 12, day: 25, name: Christmas}\n"
            "  - {month: 12, day: 26, name: Boxing Day}\n",
            encoding="utf-8",
        )

        table = load_holiday_table(path)

        assert len(table) == 2
        assert table.lookup(date(2020, 12, 26)) == "Boxing Day"

    def test_yaml_plain_list(self, tmp_path):
        path = tmp_path / "holidays.yml"
        path.write_text("- {month: 7, day: 4, name: Independence Day}\n", encoding="utf-8")

        assert load_holiday_table(path).lookup(date(2020, 7, 4)) == "Independence Day"

    def test_csv(self, tmp_path):
        path = tmp_path / "holidays.csv"
        path.write_text("month,day,name\n1,1,New Year\n5,1,May Day\n", encoding="utf-8")

        table = load_holiday_table(path)

        assert table.lookup(date(2021, 5, 1)) == "May Day"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_holiday_table(tmp_path / "nope.yaml")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "holidays.txt"
        path.write_text("x", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Unsupported holiday file type"):
            load_holiday_table(path)

    def test_yaml_entry_not_a_mapping(self, tmp_path):
        path = tmp_path / "holidays.yaml"
        path.write_text("holidays:\n  - Christmas Day\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="entry 0 must be a mapping"):
            load_holiday_table(path)
