"""Job runner decorator and project execution.

Provides the @timed_job decorator for adding logging and timing to job
functions, and run_project() for running every job in a project file.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, TypeVar

from dimensions.lib.config_loader import ProjectConfig
from dimensions.lib.jobs import CalendarJob, SnapshotJob
from dimensions.lib.logging import get_job_logger

logger = logging.getLogger(__name__)

__all__ = ["JobResult", "run_project", "timed_job"]

F = TypeVar("F", bound=Callable[..., Any])


def timed_job(
    name: str,
    *,
    log_level: int = logging.INFO,
) -> Callable[[F], F]:
    """Job decorator with logging and timing.

    Errors are logged and re-raised unchanged.

    Args:
        name: Name of the job for logging
        log_level: Logging level for start/completion messages

    Example:
        @timed_job("addresses_hist")
        def run(as_of: str) -> dict:
            return SnapshotJob(config).run(as_of=as_of)
    """

    def decorator(fn: F) -> F:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            job_logger = get_job_logger(f"dimensions.{name}", job=name)
            start = time.perf_counter()
            job_logger.log(log_level, "Job %s started", name)

            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - start
                job_logger.error(
                    "Job %s failed after %.2fs: %s",
                    name,
                    elapsed,
                    e,
                    extra={"elapsed_seconds": round(elapsed, 3)},
                )
                raise

            elapsed = time.perf_counter() - start
            job_logger.log(
                log_level,
                "Job %s completed in %.2fs",
                name,
                elapsed,
                extra={"elapsed_seconds": round(elapsed, 3)},
            )
            if isinstance(result, dict):
                result["_elapsed_seconds"] = elapsed
                result["_job"] = name
            return result

        return wrapper  # type: ignore

    return decorator


class JobResult:
    """Structured result from one job run."""

    def __init__(
        self,
        success: bool,
        *,
        job_name: str,
        kind: str,
        result: Optional[Dict[str, Any]] = None,
        elapsed_seconds: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.success = success
        self.job_name = job_name
        self.kind = kind
        self.result = result or {}
        self.elapsed_seconds = elapsed_seconds
        self.error = error

    @property
    def row_count(self) -> int:
        return int(self.result.get("row_count", self.result.get("history_rows", 0)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "job_name": self.job_name,
            "kind": self.kind,
            "result": self.result,
            "elapsed_seconds": self.elapsed_seconds,
            "error": str(self.error) if self.error else None,
        }

    def __repr__(self) -> str:
        status = "SUCCESS" if self.success else "FAILED"
        return (
            f"JobResult({status}, {self.kind}:{self.job_name}, "
            f"rows={self.row_count}, elapsed={self.elapsed_seconds:.2f}s)"
        )


def _run_one(kind: str, name: str, fn: Callable[[], Dict[str, Any]]) -> JobResult:
    start = time.perf_counter()
    try:
        result = fn()
    except Exception as e:
        logger.exception("%s job %s failed: %s", kind.capitalize(), name, e)
        return JobResult(
            False,
            job_name=name,
            kind=kind,
            elapsed_seconds=time.perf_counter() - start,
            error=e,
        )
    return JobResult(
        True,
        job_name=name,
        kind=kind,
        result=result,
        elapsed_seconds=time.perf_counter() - start,
    )


def run_project(
    project: ProjectConfig,
    *,
    as_of: Any = None,
    dry_run: bool = False,
    only: Optional[List[str]] = None,
) -> List[JobResult]:
    """Run the calendar job and then every snapshot job of a project.

    Each job runs once. A failure is recorded in its JobResult and the
    remaining jobs still run; nothing is retried.

    Args:
        project: Loaded project configuration
        as_of: Effective timestamp for snapshot jobs (now when omitted)
        dry_run: Plan and validate without writing
        only: Restrict to these job names

    Returns:
        One JobResult per job, in execution order
    """
    results: List[JobResult] = []
    # One effective timestamp for every snapshot in the run
    if as_of is None:
        as_of = datetime.now(timezone.utc)

    if project.calendar is not None and (not only or project.calendar.name in only):
        calendar_job = CalendarJob(project.calendar)
        results.append(
            _run_one("calendar", project.calendar.name, lambda: calendar_job.run(dry_run=dry_run))
        )

    for job_config in project.snapshots:
        if only and job_config.name not in only:
            continue
        results.append(
            _run_one(
                "snapshot",
                job_config.name,
                lambda cfg=job_config: SnapshotJob(cfg).run(as_of=as_of, dry_run=dry_run),
            )
        )

    failed = [r.job_name for r in results if not r.success]
    if failed:
        logger.error("%d of %d jobs failed: %s", len(failed), len(results), ", ".join(failed))
    else:
        logger.info("All %d jobs succeeded", len(results))
    return results
