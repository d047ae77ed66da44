"""Content fingerprints for change detection.

A fingerprint is a sha256 digest over a canonical encoding of the tracked
column values of one row. Two rows have the same fingerprint exactly when
every tracked column compares equal, with nulls comparing equal to nulls.

Canonical encoding rules:
- None, NaN, pandas NA and NaT all encode as null
- numbers are compared by value: 5, 5.0 and Decimal("5.00") are equal
  (pandas widens integer columns with nulls to float)
- timestamps encode as ISO strings; tz-aware values are converted to UTC
- columns are encoded in name order, so configuration order is irrelevant
"""

from __future__ import annotations

import hashlib
import json
import math
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Sequence

import numpy as np
import pandas as pd

from dimensions.lib.errors import FingerprintComputationError

__all__ = ["canonical_value", "compute_fingerprint", "is_null", "values_equal"]


def is_null(value: Any) -> bool:
    """Return True for every null-like value the snapshot treats as null."""
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, np.floating) and np.isnan(value):
        return True
    if isinstance(value, np.datetime64) and np.isnat(value):
        return True
    return False


def _canonical_number(value: Any) -> str:
    try:
        d = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    if d.is_infinite():
        return "Infinity" if d > 0 else "-Infinity"
    return format(d.normalize(), "f")


def canonical_value(value: Any, column: str = "?") -> List[Any]:
    """Encode one value as a JSON-safe [tag, payload] pair.

    Raises:
        FingerprintComputationError: For values with no canonical form
    """
    if isinstance(value, np.generic):
        value = value.item()

    if is_null(value):
        return ["null"]
    if isinstance(value, bool):
        return ["bool", value]
    if isinstance(value, (int, float, Decimal)):
        return ["num", _canonical_number(value)]
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise FingerprintComputationError(
                f"Cannot fingerprint column {column!r}: text is not valid UTF-8 ({e.reason})",
                column=column,
                value_type="str",
                suggestion="Check the extract's encoding; lone surrogates usually mean it was decoded wrongly.",
            ) from e
        return ["str", value]
    if isinstance(value, datetime):
        # pd.Timestamp is a datetime subclass
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return ["ts", value.isoformat()]
    if isinstance(value, date):
        return ["date", value.isoformat()]
    if isinstance(value, time):
        return ["time", value.isoformat()]
    if isinstance(value, (bytes, bytearray)):
        return ["bytes", bytes(value).hex()]
    if isinstance(value, uuid.UUID):
        return ["str", str(value)]

    raise FingerprintComputationError(
        f"Cannot fingerprint column {column!r}: unsupported type {type(value).__name__}",
        column=column,
        value_type=type(value).__name__,
    )


def compute_fingerprint(row: Mapping[str, Any], tracked_columns: Sequence[str]) -> str:
    """Compute the fingerprint of a row over its tracked columns.

    Args:
        row: Source or history row
        tracked_columns: Columns whose values define a version

    Returns:
        Hexadecimal sha256 digest

    Raises:
        FingerprintComputationError: If a tracked column is missing from
            the row or holds an unsupported value

    Example:
        >>> a = compute_fingerprint({"city": "Athens", "zip": None}, ["city", "zip"])
        >>> b = compute_fingerprint({"zip": None, "city": "Athens"}, ["zip", "city"])
        >>> a == b
        True
    """
    encoded = []
    for column in sorted(tracked_columns):
        if column not in row:
            raise FingerprintComputationError(
                f"Tracked column {column!r} is missing from the row",
                column=column,
                details={"available_columns": ", ".join(sorted(map(str, row.keys())))},
                suggestion="Check the extract's columns against check_cols.",
            )
        encoded.append([column, canonical_value(row[column], column)])

    payload = json.dumps(encoded, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def values_equal(left: Any, right: Any) -> bool:
    """Null-safe equality under the fingerprint's canonical encoding."""
    return canonical_value(left) == canonical_value(right)
