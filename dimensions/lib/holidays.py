"""Fixed-date holiday reference table.

Holidays are matched on (month, day) only, so every rule applies in every
year. Moving feasts (Easter and the days keyed off it) are not expressible
here and must not be added as fixed dates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
import yaml

from dimensions.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "GREEK_PUBLIC_HOLIDAYS",
    "HolidayRule",
    "HolidayTable",
    "greek_public_holidays",
    "load_holiday_table",
]


@dataclass(frozen=True)
class HolidayRule:
    """A holiday that falls on the same calendar day every year."""

    month: int
    day: int
    name: str

    def __post_init__(self) -> None:
        try:
            # 2000 is a leap year, so 29 February is accepted
            date(2000, int(self.month), int(self.day))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid holiday date {self.month}-{self.day} for {self.name!r}",
                field="holidays",
                value=f"{self.month}-{self.day}",
            ) from e
        if not self.name or not str(self.name).strip():
            raise ConfigurationError(
                f"Holiday on {self.month}-{self.day} has no name",
                field="holidays",
            )

    @property
    def key(self) -> Tuple[int, int]:
        return (int(self.month), int(self.day))


GREEK_PUBLIC_HOLIDAYS: Tuple[HolidayRule, ...] = (
    HolidayRule(1, 1, "New Years Day"),
    HolidayRule(1, 6, "Epiphany"),
    HolidayRule(3, 25, "Independence Day / Annunciation"),
    HolidayRule(5, 1, "Labour Day"),
    HolidayRule(8, 15, "Dormition of the Mother of God"),
    HolidayRule(10, 28, "Ochi Day"),
    HolidayRule(12, 25, "Christmas Day"),
    HolidayRule(12, 26, "Synaxis of the Mother of God"),
)


class HolidayTable:
    """Lookup of holiday names keyed by (month, day).

    Example:
        >>> table = HolidayTable([HolidayRule(12, 25, "Christmas Day")])
        >>> table.lookup(date(2031, 12, 25))
        'Christmas Day'
    """

    def __init__(self, rules: Iterable[HolidayRule] = ()):
        self._by_day: Dict[Tuple[int, int], HolidayRule] = {}
        for rule in rules:
            if rule.key in self._by_day:
                existing = self._by_day[rule.key]
                raise ConfigurationError(
                    f"Two holidays on {rule.month}-{rule.day}: "
                    f"{existing.name!r} and {rule.name!r}",
                    field="holidays",
                    value=f"{rule.month}-{rule.day}",
                )
            self._by_day[rule.key] = rule

    def __len__(self) -> int:
        return len(self._by_day)

    def __iter__(self):
        return iter(sorted(self._by_day.values(), key=lambda r: r.key))

    def __contains__(self, d: date) -> bool:
        return (d.month, d.day) in self._by_day

    def lookup(self, d: date) -> Optional[str]:
        rule = self._by_day.get((d.month, d.day))
        return rule.name if rule else None

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "HolidayTable":
        """Build a table from mappings with month, day and name keys."""
        rules: List[HolidayRule] = []
        for i, record in enumerate(records):
            if not isinstance(record, Mapping):
                raise ConfigurationError(
                    f"Holiday entry {i} must be a mapping with month, day and name",
                    field="holidays",
                    value=record,
                )
            missing = [k for k in ("month", "day", "name") if k not in record]
            if missing:
                raise ConfigurationError(
                    f"Holiday entry {i} is missing {', '.join(missing)}",
                    field="holidays",
                    value=dict(record),
                )
            try:
                month, day = int(record["month"]), int(record["day"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Holiday entry {i} needs a numeric month and day, "
                    f"got {record['month']!r}-{record['day']!r}",
                    field="holidays",
                    value=dict(record),
                ) from e
            rules.append(HolidayRule(month, day, str(record["name"])))
        return cls(rules)


def greek_public_holidays() -> HolidayTable:
    return HolidayTable(GREEK_PUBLIC_HOLIDAYS)


def load_holiday_table(path: Union[str, Path]) -> HolidayTable:
    """Load a holiday table from a YAML or CSV file.

    YAML files hold a list of {month, day, name} mappings (optionally under
    a top-level ``holidays`` key). CSV files need month, day and name
    columns.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Holiday file not found: {path}",
            field="holidays",
            value=str(path),
        )

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or []
        if isinstance(data, dict):
            data = data.get("holidays", [])
        if not isinstance(data, list):
            raise ConfigurationError(
                f"Holiday file {path} must contain a list of entries",
                field="holidays",
                value=str(path),
            )
        table = HolidayTable.from_records(data)
    elif suffix == ".csv":
        frame = pd.read_csv(path)
        table = HolidayTable.from_records(frame.to_dict("records"))
    else:
        raise ConfigurationError(
            f"Unsupported holiday file type: {suffix or '(none)'}",
            field="holidays",
            value=str(path),
            suggestion="Use a .yaml, .yml or .csv file.",
        )

    logger.debug("Loaded %d holidays from %s", len(table), path)
    return table
