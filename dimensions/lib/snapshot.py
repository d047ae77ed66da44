"""SCD Type 2 snapshot engine.

Compares a point-in-time source extract against the historized table of
one entity type and computes the minimal set of inserts and expirations
that keeps a full change history.

Per source id the engine walks a small state machine:

    ABSENT  --first seen-------------------------> CURRENT (insert)
    CURRENT --fingerprint changed----------------> CURRENT (expire + insert)
    CURRENT --fingerprint equal------------------> CURRENT (no-op)
    CURRENT --missing, invalidate_hard_deletes---> EXPIRED (expire)
    EXPIRED --seen again-------------------------> CURRENT (insert)

When invalidate_hard_deletes is off, an id missing from the extract keeps
its open row untouched (stale but current).

The engine assumes a single writer per entity type; callers serialize runs.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np
import pandas as pd

from dimensions.lib.errors import (
    ConfigurationError,
    SnapshotCommitError,
    SnapshotOrderingError,
    SourceExtractError,
    ValidationError,
)
from dimensions.lib.fingerprint import canonical_value, compute_fingerprint, is_null
from dimensions.lib.quality import check_history_invariants

if TYPE_CHECKING:
    from dimensions.lib.store import HistoryStore

logger = logging.getLogger(__name__)

__all__ = [
    "RESERVED_COLUMNS",
    "EntityState",
    "Expiration",
    "ExpirationReason",
    "HistorizedRecord",
    "SnapshotConfig",
    "SnapshotPlan",
    "apply_plan",
    "apply_snapshot",
    "coerce_timestamp",
    "entity_state",
    "make_scd_id",
    "plan_snapshot",
]

RESERVED_COLUMNS: Tuple[str, ...] = (
    "valid_from",
    "valid_to",
    "fingerprint",
    "scd_id",
    "updated_at",
)


def coerce_timestamp(value: Any, *, field: str = "as_of") -> datetime:
    """Normalize a timestamp to a naive UTC datetime.

    Accepts datetimes (naive values are taken as UTC), pandas Timestamps,
    dates (midnight) and ISO-8601 strings.
    """
    if is_null(value):
        raise ConfigurationError(f"{field} must not be null", field=field)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid {field}: {value!r} is not an ISO timestamp",
                field=field,
                value=value,
            ) from e
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise ConfigurationError(
        f"Invalid {field}: expected a timestamp, got {type(value).__name__}",
        field=field,
        value=value,
    )


def _normalize_key(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def _key_sort_token(key: Any) -> Tuple[int, Any]:
    # Numeric ids sort numerically, everything else by text
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        return (0, key)
    return (1, str(key))


def make_scd_id(key: Any, valid_from: datetime) -> str:
    """Unique id of one version: sha256 over (natural key, valid_from)."""
    payload = json.dumps([canonical_value(key, "key"), valid_from.isoformat()])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class EntityState(Enum):
    """Lifecycle state of one natural id in the history table."""

    ABSENT = "absent"  # never historized
    CURRENT = "current"  # has exactly one open version
    EXPIRED = "expired"  # all versions closed (hard-deleted at the source)


class ExpirationReason(Enum):
    CHANGED = "changed"
    DELETED = "deleted"


@dataclass(frozen=True)
class HistorizedRecord:
    """One version of a tracked entity over [valid_from, valid_to)."""

    key: Any
    attributes: Mapping[str, Any]
    valid_from: datetime
    valid_to: Optional[datetime]
    fingerprint: str
    scd_id: str
    updated_at: datetime

    @property
    def is_current(self) -> bool:
        return self.valid_to is None

    def close(self, at: datetime) -> "HistorizedRecord":
        """Return a copy of this version closed at the given timestamp."""
        if not self.is_current:
            raise SnapshotCommitError(
                f"Version {self.scd_id[:12]} of id {self.key!r} is already closed",
                details={"valid_to": self.valid_to},
            )
        return replace(self, valid_to=at)

    def to_row(self, unique_key: str) -> Dict[str, Any]:
        row: Dict[str, Any] = {unique_key: self.key}
        row.update(self.attributes)
        row.update(
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            fingerprint=self.fingerprint,
            scd_id=self.scd_id,
            updated_at=self.updated_at,
        )
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any], unique_key: str) -> "HistorizedRecord":
        """Rebuild a record from a flat history row (as written by to_row)."""
        attributes = {
            k: (None if is_null(v) else _normalize_key(v))
            for k, v in row.items()
            if k != unique_key and k not in RESERVED_COLUMNS
        }
        valid_to = row.get("valid_to")
        return cls(
            key=_normalize_key(row[unique_key]),
            attributes=attributes,
            valid_from=coerce_timestamp(row["valid_from"], field="valid_from"),
            valid_to=None if is_null(valid_to) else coerce_timestamp(valid_to, field="valid_to"),
            fingerprint=str(row["fingerprint"]),
            scd_id=str(row["scd_id"]),
            updated_at=coerce_timestamp(row["updated_at"], field="updated_at"),
        )


@dataclass(frozen=True)
class Expiration:
    """Instruction to close the open version of one id."""

    key: Any
    scd_id: str
    valid_from: datetime
    valid_to: datetime
    reason: ExpirationReason


@dataclass
class SnapshotPlan:
    """The inserts and expirations computed for one snapshot run."""

    entity: str
    as_of: datetime
    inserts: List[HistorizedRecord] = field(default_factory=list)
    expirations: List[Expiration] = field(default_factory=list)
    unchanged: int = 0
    stale: int = 0  # ids missing from the extract but left open

    @property
    def is_empty(self) -> bool:
        return not self.inserts and not self.expirations

    @property
    def deleted(self) -> int:
        return sum(1 for e in self.expirations if e.reason is ExpirationReason.DELETED)

    def summary(self) -> Dict[str, Any]:
        return {
            "entity": self.entity,
            "as_of": self.as_of.isoformat(),
            "inserts": len(self.inserts),
            "expirations": len(self.expirations),
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "stale": self.stale,
        }


@dataclass
class SnapshotConfig:
    """What to historize for one entity type.

    Example:
        config = SnapshotConfig(
            entity="addresses",
            unique_key="id",
            tracked_columns=["country", "region", "city", "postal_code"],
            invalidate_hard_deletes=True,
        )
    """

    entity: str
    tracked_columns: Sequence[str]
    unique_key: str = "id"
    # None carries every non-tracked source column along
    passthrough_columns: Optional[Sequence[str]] = None
    invalidate_hard_deletes: bool = False
    # Confirms an empty extract is authoritative when invalidating deletes
    allow_empty_extract: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.tracked_columns, str):
            self.tracked_columns = [self.tracked_columns]
        self.tracked_columns = tuple(self.tracked_columns or ())
        if self.passthrough_columns is not None:
            self.passthrough_columns = tuple(self.passthrough_columns)

        errors = self._validate()
        if errors:
            raise ConfigurationError(
                f"Invalid snapshot configuration for {self.entity or '?'}",
                field="tracked_columns" if not self.tracked_columns else None,
                details={f"error_{i + 1}": e for i, e in enumerate(errors)},
                entity=self.entity or None,
            )

    def _validate(self) -> List[str]:
        errors: List[str] = []
        if not self.entity:
            errors.append("entity is required")
        if not self.unique_key:
            errors.append("unique_key is required")
        if not self.tracked_columns:
            errors.append("tracked_columns must name at least one column")
        duplicates = sorted({c for c in self.tracked_columns if self.tracked_columns.count(c) > 1})
        if duplicates:
            errors.append(f"tracked_columns repeats {', '.join(duplicates)}")
        if self.unique_key in self.tracked_columns:
            errors.append(f"unique_key {self.unique_key!r} cannot also be tracked")
        named = [self.unique_key, *self.tracked_columns, *(self.passthrough_columns or ())]
        reserved = sorted({c for c in named if c in RESERVED_COLUMNS})
        if reserved:
            errors.append(f"reserved column names used: {', '.join(reserved)}")
        return errors

    def attribute_columns(self, row: Mapping[str, Any]) -> List[str]:
        """Tracked columns first, then the passthrough columns for this row."""
        if self.passthrough_columns is not None:
            extra = [c for c in self.passthrough_columns if c not in self.tracked_columns]
        else:
            extra = [
                c for c in row
                if c != self.unique_key
                and c not in self.tracked_columns
                and c not in RESERVED_COLUMNS
            ]
        return [*self.tracked_columns, *extra]


def entity_state(records: Iterable[HistorizedRecord]) -> EntityState:
    """Derive the lifecycle state of one id from its versions."""
    records = list(records)
    if not records:
        return EntityState.ABSENT
    if any(r.is_current for r in records):
        return EntityState.CURRENT
    return EntityState.EXPIRED


def _source_records(source_rows: Any) -> List[Dict[str, Any]]:
    if isinstance(source_rows, pd.DataFrame):
        frame = source_rows.astype(object).where(source_rows.notna(), None)
        return frame.to_dict("records")
    return [dict(row) for row in source_rows]


def plan_snapshot(
    history: Iterable[HistorizedRecord],
    source_rows: Any,
    config: SnapshotConfig,
    as_of: Any,
) -> SnapshotPlan:
    """Compute the inserts and expirations for one snapshot run.

    Pure function: neither the history nor the source rows are modified.

    Args:
        history: Existing versions of this entity type
        source_rows: Point-in-time extract (DataFrame or iterable of mappings)
        config: Snapshot configuration
        as_of: Timestamp the run is effective at

    Returns:
        SnapshotPlan describing the minimal change

    Raises:
        SourceExtractError: Duplicate/null keys or an unconfirmed empty
            extract with deletion invalidation enabled
        FingerprintComputationError: A tracked value cannot be fingerprinted
        SnapshotOrderingError: A change at or before the current version's
            valid_from
        ValidationError: The existing history is already inconsistent
    """
    as_of = coerce_timestamp(as_of)
    records = list(history)

    issues = check_history_invariants(records)
    if issues:
        raise ValidationError(
            f"Existing history for {config.entity} is inconsistent",
            issues=issues,
            entity=config.entity,
        )

    versions: Dict[Any, List[HistorizedRecord]] = defaultdict(list)
    open_rows: Dict[Any, HistorizedRecord] = {}
    for record in records:
        versions[record.key].append(record)
        if record.is_current:
            open_rows[record.key] = record

    source = _source_records(source_rows)
    plan = SnapshotPlan(entity=config.entity, as_of=as_of)

    if not source and config.invalidate_hard_deletes and open_rows and not config.allow_empty_extract:
        raise SourceExtractError(
            f"Empty extract for {config.entity} would expire {len(open_rows)} open rows",
            entity=config.entity,
            suggestion=(
                "An empty read is usually a transient failure. If the source "
                "really is empty, set allow_empty_extract: true for this run."
            ),
        )

    seen: Dict[Any, int] = {}
    for position, row in enumerate(source):
        if config.unique_key not in row:
            raise SourceExtractError(
                f"Extract row {position} has no {config.unique_key!r} column",
                entity=config.entity,
            )
        raw_key = row[config.unique_key]
        if is_null(raw_key):
            raise SourceExtractError(
                f"Extract row {position} has a null {config.unique_key!r}",
                entity=config.entity,
            )
        key = _normalize_key(raw_key)
        if key in seen:
            raise SourceExtractError(
                f"Duplicate {config.unique_key}={key!r} in extract "
                f"(rows {seen[key]} and {position})",
                entity=config.entity,
                suggestion="Deduplicate the extract so each id appears once.",
            )
        seen[key] = position

        fingerprint = compute_fingerprint(row, config.tracked_columns)
        current = open_rows.get(key)

        if current is not None and current.fingerprint == fingerprint:
            plan.unchanged += 1
            continue

        if current is not None:
            if as_of <= current.valid_from:
                raise SnapshotOrderingError(
                    f"Change for id {key!r} at {as_of.isoformat()} is not after "
                    f"its current version's valid_from {current.valid_from.isoformat()}",
                    entity=config.entity,
                )
            plan.expirations.append(
                Expiration(
                    key=key,
                    scd_id=current.scd_id,
                    valid_from=current.valid_from,
                    valid_to=as_of,
                    reason=ExpirationReason.CHANGED,
                )
            )
            logger.debug("id %r: CURRENT -> CURRENT (new version)", key)
        else:
            state = entity_state(versions.get(key, ()))
            if state is EntityState.EXPIRED:
                last_close = max(r.valid_to for r in versions[key] if r.valid_to is not None)
                if as_of < last_close:
                    raise SnapshotOrderingError(
                        f"Id {key!r} reappears at {as_of.isoformat()}, before its "
                        f"last version closed at {last_close.isoformat()}",
                        entity=config.entity,
                    )
            logger.debug("id %r: %s -> CURRENT", key, state.name)

        attributes = {c: row.get(c) for c in config.attribute_columns(row)}
        plan.inserts.append(
            HistorizedRecord(
                key=key,
                attributes=attributes,
                valid_from=as_of,
                valid_to=None,
                fingerprint=fingerprint,
                scd_id=make_scd_id(key, as_of),
                updated_at=as_of,
            )
        )

    missing = sorted((k for k in open_rows if k not in seen), key=_key_sort_token)
    if config.invalidate_hard_deletes:
        for key in missing:
            current = open_rows[key]
            if as_of <= current.valid_from:
                raise SnapshotOrderingError(
                    f"Deletion of id {key!r} at {as_of.isoformat()} is not after "
                    f"its current version's valid_from {current.valid_from.isoformat()}",
                    entity=config.entity,
                )
            plan.expirations.append(
                Expiration(
                    key=key,
                    scd_id=current.scd_id,
                    valid_from=current.valid_from,
                    valid_to=as_of,
                    reason=ExpirationReason.DELETED,
                )
            )
            logger.debug("id %r: CURRENT -> EXPIRED", key)
    elif missing:
        plan.stale = len(missing)
        logger.info(
            "%d ids missing from %s extract left open (invalidate_hard_deletes is off)",
            len(missing),
            config.entity,
        )

    return plan


def apply_plan(
    history: Iterable[HistorizedRecord],
    plan: SnapshotPlan,
) -> List[HistorizedRecord]:
    """Build the full history table that results from applying a plan.

    Raises:
        SnapshotCommitError: If an expiration targets a version that does
            not exist or is already closed
    """
    by_scd_id: Dict[str, HistorizedRecord] = {}
    ordered: List[str] = []
    for record in history:
        by_scd_id[record.scd_id] = record
        ordered.append(record.scd_id)

    for expiration in plan.expirations:
        target = by_scd_id.get(expiration.scd_id)
        if target is None:
            raise SnapshotCommitError(
                f"Cannot expire id {expiration.key!r}: version "
                f"{expiration.scd_id[:12]} is not in the history",
                entity=plan.entity,
            )
        by_scd_id[expiration.scd_id] = target.close(expiration.valid_to)

    for insert in plan.inserts:
        if insert.scd_id in by_scd_id:
            raise SnapshotCommitError(
                f"Version {insert.scd_id[:12]} of id {insert.key!r} already exists",
                entity=plan.entity,
            )
        by_scd_id[insert.scd_id] = insert
        ordered.append(insert.scd_id)

    result = [by_scd_id[scd_id] for scd_id in ordered]
    result.sort(key=lambda r: (_key_sort_token(r.key), r.valid_from))
    return result


def apply_snapshot(
    store: "HistoryStore",
    source_rows: Any,
    config: SnapshotConfig,
    as_of: Any,
) -> SnapshotPlan:
    """Plan a snapshot against a store's history and commit it atomically.

    Either every insert and expiration is committed or none is. Running
    twice with the same extract is a no-op the second time.

    Example:
        store = InMemoryHistoryStore()
        plan = apply_snapshot(store, rows, config, "2025-01-15T02:00:00")
        print(plan.summary())
    """
    plan = plan_snapshot(store.load(), source_rows, config, as_of)
    if plan.is_empty:
        logger.info("No changes for %s at %s", config.entity, plan.as_of.isoformat())
        return plan

    store.commit(plan)
    logger.info(
        "Committed %s snapshot at %s: %d inserts, %d expirations (%d deleted)",
        config.entity,
        plan.as_of.isoformat(),
        len(plan.inserts),
        len(plan.expirations),
        plan.deleted,
    )
    return plan
