"""File I/O for dimension jobs.

Reads source extracts and writes output tables with a metadata sidecar.
Writes are atomic: data goes to a temporary file in the target directory
and is moved into place with os.replace, so readers never observe a
partially written table.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from dimensions.lib.errors import SourceExtractError

logger = logging.getLogger(__name__)

__all__ = [
    "SUPPORTED_FORMATS",
    "WriteMetadata",
    "compute_file_sha256",
    "metadata_path_for",
    "read_extract",
    "read_metadata",
    "write_frame",
]

SUPPORTED_FORMATS = (".parquet", ".csv")


@dataclass
class WriteMetadata:
    """Metadata written alongside an output table."""

    row_count: int
    columns: List[str]
    written_at: str
    format: str
    sha256: str
    job_name: Optional[str] = None
    source_path: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WriteMetadata":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def compute_file_sha256(path: Path) -> str:
    """Compute the SHA256 of a file, reading in 1MB chunks."""
    hasher = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def metadata_path_for(path: Union[str, Path]) -> Path:
    """Sidecar path for a data file: data.parquet -> data.metadata.json"""
    path = Path(path)
    return path.with_name(f"{path.stem}.metadata.json")


def _format_of(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_FORMATS:
        raise ValueError(
            f"Unsupported file type {suffix or '(none)'} for {path}; "
            f"use one of {', '.join(SUPPORTED_FORMATS)}"
        )
    return suffix.lstrip(".")


def _read_csv(path: Path, typed_columns: Optional[Sequence[str]]) -> pd.DataFrame:
    if typed_columns is None:
        return pd.read_csv(path)
    header = pd.read_csv(path, nrows=0).columns
    typed = set(typed_columns)
    # Empty cells still read as NaN
    return pd.read_csv(path, dtype={c: str for c in header if c not in typed})


def read_extract(
    path: Union[str, Path],
    *,
    typed_columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Read a point-in-time source extract (CSV or parquet).

    CSV carries no schema. When typed_columns is given, only those columns
    have their type inferred and every other column is read as text, so
    "01234" keeps its leading zero and one odd value cannot flip the type
    of a column between extracts. Parquet keeps its stored schema.

    Args:
        path: Extract file (.csv or .parquet)
        typed_columns: CSV columns whose type pandas may infer; all
            columns are inferred when omitted

    Raises:
        SourceExtractError: If the extract is missing or unreadable
    """
    path = Path(path)
    if not path.exists():
        raise SourceExtractError(
            f"Source extract not found: {path}",
            path=str(path),
            suggestion="Check source_path, or run the extract step first.",
        )
    try:
        fmt = _format_of(path)
        if fmt == "csv":
            frame = _read_csv(path, typed_columns)
        else:
            frame = pd.read_parquet(path)
    except (OSError, ValueError) as e:
        raise SourceExtractError(
            f"Could not read source extract {path}",
            path=str(path),
            cause=e,
        ) from e

    logger.debug("Read %d rows from %s", len(frame), path)
    return frame


def write_frame(
    frame: pd.DataFrame,
    path: Union[str, Path],
    *,
    job_name: Optional[str] = None,
    source_path: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> WriteMetadata:
    """Atomically write a DataFrame to parquet or CSV with a metadata sidecar.

    Args:
        frame: Table to write
        path: Target file (.parquet or .csv)
        job_name: Job name recorded in the metadata
        source_path: Source path recorded for lineage
        extra: Additional metadata fields

    Returns:
        WriteMetadata describing what was written
    """
    path = Path(path)
    fmt = _format_of(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        if fmt == "parquet":
            frame.to_parquet(tmp_path, index=False)
        else:
            frame.to_csv(tmp_path, index=False)
        sha256 = compute_file_sha256(tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    metadata = WriteMetadata(
        row_count=len(frame),
        columns=[str(c) for c in frame.columns],
        written_at=datetime.now(timezone.utc).isoformat(),
        format=fmt,
        sha256=sha256,
        job_name=job_name,
        source_path=source_path,
        extra=extra or {},
    )
    metadata_path_for(path).write_text(metadata.to_json(), encoding="utf-8")

    logger.info("Wrote %d rows to %s", len(frame), path)
    return metadata


def read_metadata(path: Union[str, Path]) -> Optional[WriteMetadata]:
    """Read the metadata sidecar of a data file, if present."""
    sidecar = metadata_path_for(path)
    if not sidecar.exists():
        return None
    with open(sidecar, encoding="utf-8") as f:
        return WriteMetadata.from_dict(json.load(f))
