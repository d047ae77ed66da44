"""Dense date spine and period truncation.

The spine is the calendar backbone every reporting period is derived from:
one date per day across a closed range, no gaps and no duplicates.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Iterator

from dimensions.lib.errors import ConfigurationError

if TYPE_CHECKING:
    from dimensions.lib.periods import Granularity

__all__ = ["coerce_date", "date_spine", "truncate"]


def coerce_date(value: Any, *, field: str = "date") -> date:
    """Convert a date, datetime or ISO-8601 string to a date.

    Raises:
        ConfigurationError: If the value cannot be read as a calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid {field}: {value!r} is not an ISO date (YYYY-MM-DD)",
                field=field,
                value=value,
            ) from e
    raise ConfigurationError(
        f"Invalid {field}: expected a date, got {type(value).__name__}",
        field=field,
        value=value,
    )


def date_spine(start_date: Any, end_date: Any) -> Iterator[date]:
    """Yield every calendar date from start_date to end_date inclusive.

    The range is validated eagerly, so a bad range fails at call time
    rather than on first iteration.

    Args:
        start_date: First date of the range
        end_date: Last date of the range (inclusive)

    Returns:
        Lazy iterator of dates in ascending order

    Raises:
        ConfigurationError: If start_date is after end_date

    Example:
        >>> list(date_spine("2020-02-27", "2020-03-01"))
        [datetime.date(2020, 2, 27), datetime.date(2020, 2, 28),
         datetime.date(2020, 2, 29), datetime.date(2020, 3, 1)]
    """
    start = coerce_date(start_date, field="start_date")
    end = coerce_date(end_date, field="end_date")
    if start > end:
        raise ConfigurationError(
            f"start_date {start.isoformat()} is after end_date {end.isoformat()}",
            field="start_date",
            value=start.isoformat(),
            suggestion="Swap the dates or widen the range.",
        )
    return _iter_days(start, end)


def _iter_days(start: date, end: date) -> Iterator[date]:
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def truncate(d: date, granularity: "Granularity", week_start: int = 1) -> date:
    """Truncate a date to the first day of its period.

    Args:
        d: Date to truncate
        granularity: Period unit
        week_start: ISO weekday a week starts on (1=Monday .. 7=Sunday)
    """
    from dimensions.lib.periods import Granularity

    if granularity is Granularity.DAY:
        return d
    if granularity is Granularity.WEEK:
        return d - timedelta(days=(d.isoweekday() - week_start) % 7)
    if granularity is Granularity.MONTH:
        return d.replace(day=1)
    if granularity is Granularity.QUARTER:
        return date(d.year, 3 * ((d.month - 1) // 3) + 1, 1)
    if granularity is Granularity.YEAR:
        return date(d.year, 1, 1)
    raise ConfigurationError(f"Unknown granularity: {granularity!r}", field="granularity")
