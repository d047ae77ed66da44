"""Run metrics for dimension jobs.

Tracks phase timings and counts for a single job run so the runner can
emit them as structured log records and include them in job results.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional

__all__ = ["MetricPoint", "PhaseTimer", "JobMetrics"]


@dataclass
class MetricPoint:
    """A single metric data point."""

    name: str
    value: Any
    timestamp: datetime
    unit: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.unit:
            result["unit"] = self.unit
        return result


@dataclass
class PhaseTimer:
    """Timer tracking a named job phase."""

    name: str
    start_time: float = field(default_factory=time.perf_counter)
    end_time: Optional[float] = None

    def stop(self) -> float:
        self.end_time = time.perf_counter()
        return self.duration

    @property
    def duration(self) -> float:
        end = self.end_time or time.perf_counter()
        return end - self.start_time


class JobMetrics:
    """Metrics for a single job run.

    Example:
        metrics = JobMetrics("addresses_hist", entity="addresses")
        with metrics.time_phase("plan"):
            plan = plan_snapshot(...)
        metrics.record("inserts", len(plan.inserts), unit="rows")
    """

    def __init__(self, job: str, *, entity: Optional[str] = None):
        self.job = job
        self.entity = entity
        self._start_time = time.perf_counter()
        self._end_time: Optional[float] = None
        self._phases: List[PhaseTimer] = []
        self._metrics: List[MetricPoint] = []

    @contextmanager
    def time_phase(self, name: str) -> Generator[PhaseTimer, None, None]:
        """Context manager that tracks a phase duration."""
        timer = PhaseTimer(name=name)
        self._phases.append(timer)
        try:
            yield timer
        finally:
            timer.stop()

    def record(self, name: str, value: Any, unit: Optional[str] = None) -> None:
        self._metrics.append(
            MetricPoint(
                name=name,
                value=value,
                timestamp=datetime.now(timezone.utc),
                unit=unit,
            )
        )

    def finish(self) -> None:
        if self._end_time is None:
            self._end_time = time.perf_counter()

    @property
    def total_duration(self) -> float:
        end = self._end_time or time.perf_counter()
        return end - self._start_time

    @property
    def metrics(self) -> List[MetricPoint]:
        return list(self._metrics)

    def phase_durations(self) -> Dict[str, float]:
        return {p.name: round(p.duration, 3) for p in self._phases}

    def summary(self) -> Dict[str, Any]:
        """Return a summary dictionary of the tracked metrics."""
        self.finish()
        return {
            "job": self.job,
            "entity": self.entity,
            "total_seconds": round(self.total_duration, 3),
            "phases": self.phase_durations(),
            "metrics": {m.name: m.value for m in self._metrics},
        }
