"""Reporting-period dimension generator.

Expands the date spine into one row per (granularity, anchor date) and
enriches each anchor with calendar attributes and holiday flags.

Conventions:
- day_of_week is ISO 8601: Monday=1 .. Sunday=7
- is_weekend is true for Saturday and Sunday unless overridden
- weeks start on Monday unless overridden (week_start is an ISO weekday)
- calendar_year/quarter/month are Gregorian; iso_year/iso_week are ISO 8601
- every attribute describes the anchor date itself; with week_start other
  than Monday a Week row's iso_week/iso_year belong to the anchor, so a
  Sunday-start week reports the ISO week before the one holding most of
  its days
- rows are ordered by anchor date, then Day < Week < Month < Quarter < Year
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

import pandas as pd

from dimensions.lib.errors import ConfigurationError
from dimensions.lib.holidays import HolidayTable
from dimensions.lib.spine import date_spine, truncate

logger = logging.getLogger(__name__)

__all__ = [
    "DAY_NAMES",
    "MONTH_NAMES",
    "DEFAULT_WEEKEND_DAYS",
    "Granularity",
    "ReportingPeriodRow",
    "generate_periods",
    "parse_weekday",
    "periods_to_frame",
]

# Fixed English names; strftime("%A") would follow the process locale
DAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DEFAULT_WEEKEND_DAYS: FrozenSet[int] = frozenset({6, 7})


class Granularity(Enum):
    """Period unit a reporting row represents."""

    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    QUARTER = "Quarter"
    YEAR = "Year"

    @property
    def rank(self) -> int:
        return _GRANULARITY_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> "Granularity":
        """Parse a granularity name case-insensitively.

        Raises:
            ConfigurationError: If the name is not a known granularity
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        valid = ", ".join(m.value for m in cls)
        raise ConfigurationError(
            f"Unknown granularity {value!r}. Valid options: {valid}",
            field="granularities",
            value=value,
        )


_GRANULARITY_ORDER: Tuple[Granularity, ...] = (
    Granularity.DAY,
    Granularity.WEEK,
    Granularity.MONTH,
    Granularity.QUARTER,
    Granularity.YEAR,
)


@dataclass(frozen=True)
class ReportingPeriodRow:
    """One reporting period, keyed by (granularity, anchor_date)."""

    granularity: Granularity
    anchor_date: date
    calendar_year: int
    calendar_quarter: int
    calendar_month: int
    calendar_month_name: str
    iso_year: int
    iso_week: int
    day_of_week: int
    day_name: str
    is_weekend: bool
    is_holiday: bool
    holiday_name: Optional[str]

    @property
    def key(self) -> Tuple[Granularity, date]:
        return (self.granularity, self.anchor_date)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["granularity"] = self.granularity.value
        return data


def parse_weekday(value: Any, *, field: str = "week_start") -> int:
    """Parse an ISO weekday number (1-7) or an English day name."""
    if isinstance(value, str) and not value.strip().isdigit():
        name = value.strip().lower()
        for number, day_name in enumerate(DAY_NAMES, start=1):
            if name in (day_name.lower(), day_name[:3].lower()):
                return number
        raise ConfigurationError(f"Unknown weekday {value!r}", field=field, value=value)
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid weekday {value!r}", field=field, value=value) from e
    if not 1 <= number <= 7:
        raise ConfigurationError(
            f"Weekday must be between 1 (Monday) and 7 (Sunday), got {number}",
            field=field,
            value=value,
        )
    return number


def _enrich(
    granularity: Granularity,
    anchor: date,
    holidays: Optional[HolidayTable],
    weekend_days: FrozenSet[int],
) -> ReportingPeriodRow:
    iso_year, iso_week, iso_weekday = anchor.isocalendar()
    holiday_name = holidays.lookup(anchor) if holidays is not None else None
    return ReportingPeriodRow(
        granularity=granularity,
        anchor_date=anchor,
        calendar_year=anchor.year,
        calendar_quarter=(anchor.month - 1) // 3 + 1,
        calendar_month=anchor.month,
        calendar_month_name=MONTH_NAMES[anchor.month - 1],
        iso_year=iso_year,
        iso_week=iso_week,
        day_of_week=iso_weekday,
        day_name=DAY_NAMES[iso_weekday - 1],
        is_weekend=iso_weekday in weekend_days,
        is_holiday=holiday_name is not None,
        holiday_name=holiday_name,
    )


def generate_periods(
    start_date: Any,
    end_date: Any,
    granularities: Iterable[Any],
    holiday_table: Optional[HolidayTable] = None,
    *,
    week_start: Any = 1,
    weekend_days: Iterable[Any] = DEFAULT_WEEKEND_DAYS,
) -> List[ReportingPeriodRow]:
    """Generate the reporting-period dimension.

    Every date in [start_date, end_date] is truncated to each requested
    granularity and deduplicated, giving one row per (granularity, anchor).
    Anchors may precede start_date when the range starts mid-period.

    Args:
        start_date: First date of the spine (date or ISO string)
        end_date: Last date of the spine, inclusive
        granularities: Granularity members or names ("Day", "month", ...)
        holiday_table: Fixed-date holidays; None flags no holidays
        week_start: ISO weekday (or name) weeks start on
        weekend_days: ISO weekdays (or names) counted as weekend

    Returns:
        Rows ordered by (anchor_date, granularity)

    Raises:
        ConfigurationError: For an invalid range, empty or unknown
            granularities, or invalid weekday settings

    Example:
        >>> rows = generate_periods("2020-01-01", "2020-03-31", {"Month"})
        >>> [r.anchor_date.isoformat() for r in rows]
        ['2020-01-01', '2020-02-01', '2020-03-01']
    """
    requested: Set[Granularity] = {Granularity.parse(g) for g in granularities}
    if not requested:
        raise ConfigurationError(
            "At least one granularity is required",
            field="granularities",
            suggestion="Request one or more of: Day, Week, Month, Quarter, Year",
        )
    week_start_day = parse_weekday(week_start, field="week_start")
    weekend = frozenset(parse_weekday(d, field="weekend_days") for d in weekend_days)

    ordered = sorted(requested, key=lambda g: g.rank)
    anchors: Dict[Granularity, Set[date]] = {g: set() for g in ordered}
    day_count = 0
    for d in date_spine(start_date, end_date):
        day_count += 1
        for g in ordered:
            anchors[g].add(truncate(d, g, week_start=week_start_day))

    rows = [
        _enrich(g, anchor, holiday_table, weekend)
        for g in ordered
        for anchor in anchors[g]
    ]
    rows.sort(key=lambda r: (r.anchor_date, r.granularity.rank))

    logger.debug(
        "Generated %d period rows from %d spine dates (%s)",
        len(rows),
        day_count,
        ", ".join(g.value for g in ordered),
    )
    return rows


def periods_to_frame(rows: Iterable[ReportingPeriodRow]) -> pd.DataFrame:
    """Convert period rows to a DataFrame with one column per field."""
    columns = [f.name for f in fields(ReportingPeriodRow)]
    frame = pd.DataFrame([row.to_dict() for row in rows], columns=columns)
    frame["anchor_date"] = pd.to_datetime(frame["anchor_date"])
    frame["holiday_name"] = frame["holiday_name"].astype("string")
    return frame
