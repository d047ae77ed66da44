"""Logging utilities for dimension jobs.

Every job logs through a JobLogger carrying its job and entity names.
Console output prefixes each line with that context; JSON output lifts it
to top-level keys so a log store can filter runs of one entity:

    {"timestamp": "2025-01-15T02:00:01.120Z", "level": "INFO",
     "job": "addresses_hist", "entity": "addresses",
     "logger": "dimensions.lib.jobs", "message": "METRIC inserts=12",
     "metric": {"name": "inserts", "value": 12, "unit": "rows"}}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

__all__ = [
    "CONTEXT_FIELDS",
    "ConsoleFormatter",
    "JSONFormatter",
    "JobLogger",
    "get_job_logger",
    "setup_logging",
]

# Record attributes promoted to top-level keys of a JSON log line
CONTEXT_FIELDS = ("job", "entity", "as_of")

_METRIC_FIELDS = {"metric_name": "name", "metric_value": "value", "metric_unit": "unit"}

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def _context_label(record: logging.LogRecord) -> str:
    parts = [str(getattr(record, f)) for f in ("job", "entity") if getattr(record, f, None)]
    return ".".join(parts)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with job context and metrics as keys."""

    def __init__(self, exclude_fields: Optional[list[str]] = None):
        super().__init__()
        self.exclude_fields = set(exclude_fields or [])

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value
        log_data["logger"] = record.name
        log_data["message"] = record.getMessage()

        metric = {
            short: getattr(record, attr)
            for attr, short in _METRIC_FIELDS.items()
            if hasattr(record, attr)
        }
        if metric:
            log_data["metric"] = metric

        extra_attrs = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS
            and k not in CONTEXT_FIELDS
            and k not in _METRIC_FIELDS
            and k not in self.exclude_fields
        }
        if extra_attrs:
            log_data["extra"] = extra_attrs

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text lines, prefixed with [job.entity] when the record has it."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        label = _context_label(record)
        if not label:
            return line
        head, sep, message = line.partition(": ")
        return f"{head}{sep}[{label}] {message}" if sep else f"[{label}] {line}"


class JobLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every record with job context.

    Per-call ``extra`` values win over the context.

    Example:
        logger = get_job_logger(__name__, job="addresses_hist", entity="addresses")
        logger.set_context(as_of="2025-01-15T02:00:00")
        logger.info("Planned %d inserts", 12)
    """

    def __init__(self, name: str, **context: Any):
        super().__init__(logging.getLogger(name), dict(context))

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self.extra)

    def set_context(self, **kwargs: Any) -> None:
        self.extra.update(kwargs)

    def clear_context(self) -> None:
        self.extra.clear()

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def metric(self, name: str, value: Any, unit: Optional[str] = None, **tags: Any) -> None:
        """Log one metric value (inserts, history_rows, ...) as an INFO record."""
        extra: Dict[str, Any] = {"metric_name": name, "metric_value": value, **tags}
        if unit:
            extra["metric_unit"] = unit
        self.info("METRIC %s=%s", name, value, extra=extra)


def get_job_logger(name: str, **context: Any) -> JobLogger:
    return JobLogger(name, **context)


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
) -> None:
    """Configure the root logger for a CLI or scheduled run.

    Args:
        verbose: Enable debug-level logging (overrides level)
        json_format: Use JSON output format (for log aggregation)
        log_file: Optional file path to write logs to
        level: Level name used when verbose is off (defaults to INFO)
    """
    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or "INFO").upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    formatter: logging.Formatter = JSONFormatter() if json_format else ConsoleFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # duckdb/ibis and pyarrow are chatty at debug level
    logging.getLogger("ibis").setLevel(logging.WARNING)
    logging.getLogger("pyarrow").setLevel(logging.WARNING)
