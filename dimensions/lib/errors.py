"""Structured exception hierarchy for dimension jobs.

Provides specific exception types for the failure modes of the calendar
generator and the snapshot engine, with rich context for debugging.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

__all__ = [
    "DimensionError",
    "ConfigurationError",
    "FingerprintComputationError",
    "SourceExtractError",
    "SnapshotOrderingError",
    "SnapshotCommitError",
    "HierarchyError",
    "ValidationError",
]


class DimensionError(Exception):
    """Base exception for all dimension job errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        job: Optional[str] = None,
        entity: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.job = job
        self.entity = entity
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if job or entity:
            context = f"{job or '?'}.{entity or '?'}"
            parts.insert(0, f"[{context}]")

        if self.details:
            detail_lines = [f"  {k}: {v}" for k, v in self.details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "job": self.job,
            "entity": self.entity,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(DimensionError):
    """Error in job configuration.

    Raised before any write when a date range, granularity, tracked-column
    set or YAML file is invalid.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class FingerprintComputationError(DimensionError):
    """A tracked column value cannot be fingerprinted.

    Fails the whole snapshot run; nothing is committed.
    """

    def __init__(
        self,
        message: str,
        *,
        column: Optional[str] = None,
        value_type: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.column = column
        self.value_type = value_type

        details = kwargs.pop("details", None) or {}
        if column:
            details["column"] = column
        if value_type:
            details["value_type"] = value_type

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Tracked columns must hold scalar values (text, numbers, "
                "booleans, dates, timestamps). Cast or drop the column."
            )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class SourceExtractError(DimensionError):
    """The source extract violates a snapshot precondition.

    Raised for unreadable extracts, duplicate or null keys, and empty
    extracts that would expire every open row.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path
        self.cause = cause

        details = kwargs.pop("details", None) or {}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class SnapshotOrderingError(DimensionError):
    """A change was requested at an as-of timestamp that is not after the
    current version's valid_from."""


class SnapshotCommitError(DimensionError):
    """Committing a snapshot plan failed; the stored history is unchanged."""

    def __init__(
        self,
        message: str,
        *,
        target: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.target = target
        self.cause = cause

        details = kwargs.pop("details", None) or {}
        if target:
            details["target"] = target
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class HierarchyError(DimensionError):
    """The category table cannot be walked into a tree."""


class ValidationError(DimensionError):
    """Output validation failed.

    Raised when a generated table breaks its declared schema.
    """

    def __init__(
        self,
        message: str,
        *,
        issues: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.issues = issues or []

        details = kwargs.pop("details", None) or {}
        if issues:
            details["issue_count"] = len(issues)

        if issues:
            issue_lines = "\n".join(f"  - {issue}" for issue in issues)
            message = f"{message}\n\nIssues found:\n{issue_lines}"

        super().__init__(message, details=details, **kwargs)
