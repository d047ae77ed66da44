"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import pytest

from dimensions.lib.settings import DimensionSettings
from dimensions.lib.snapshot import SnapshotConfig

ADDRESS_TRACKED = [
    "country",
    "region",
    "city",
    "postal_code",
    "address_line1",
    "address_line2",
    "latitude",
    "longitude",
]

T0 = datetime(2025, 1, 1, 2, 0, 0)
T1 = datetime(2025, 1, 2, 2, 0, 0)
T2 = datetime(2025, 1, 3, 2, 0, 0)
T3 = datetime(2025, 1, 4, 2, 0, 0)


def address(address_id: int, **overrides: Any) -> Dict[str, Any]:
    """Build one address extract row with sensible defaults."""
    row: Dict[str, Any] = {
        "id": address_id,
        "country": "GR",
        "region": "Attica",
        "city": "Athens",
        "postal_code": f"{10000 + address_id:05d}",
        "address_line1": f"Street {address_id} A",
        "address_line2": None,
        "latitude": 37.98,
        "longitude": 23.72,
        "created_at": datetime(2024, 6, 1),
    }
    row.update(overrides)
    return row


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep DIMENSIONS_* variables from the developer's shell out of tests."""
    for name in ("DIMENSIONS_WAREHOUSE_ROOT", "DIMENSIONS_LOG_LEVEL", "DIMENSIONS_LOG_FORMAT", "DIMENSIONS_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def address_config() -> SnapshotConfig:
    """Snapshot config matching the addresses history table."""
    return SnapshotConfig(
        entity="addresses",
        unique_key="id",
        tracked_columns=ADDRESS_TRACKED,
        passthrough_columns=["created_at"],
        invalidate_hard_deletes=True,
    )


@pytest.fixture
def keep_deleted_config() -> SnapshotConfig:
    """Same as address_config but leaves missing ids open."""
    return SnapshotConfig(
        entity="addresses",
        unique_key="id",
        tracked_columns=ADDRESS_TRACKED,
        passthrough_columns=["created_at"],
        invalidate_hard_deletes=False,
    )


@pytest.fixture
def three_addresses() -> List[Dict[str, Any]]:
    return [address(1), address(2, city="Patras", region="Western Greece"), address(3)]


@pytest.fixture
def settings(tmp_path) -> DimensionSettings:
    """Settings with the warehouse rooted in the test directory."""
    return DimensionSettings(warehouse_root=str(tmp_path / "warehouse"))


@pytest.fixture
def project_file(tmp_path, three_addresses) -> Path:
    """A project YAML with a small calendar job and one snapshot job."""
    extracts = tmp_path / "extracts"
    extracts.mkdir()
    pd.DataFrame(three_addresses).to_csv(extracts / "addresses.csv", index=False)

    config_path = tmp_path / "project.yaml"
    config_path.write_text(
        """
name: test_project
calendar:
  name: reporting_periods
  start_date: 2024-12-30
  end_date: 2025-01-05
  granularities: [Day, Week, Month]
  holidays: greek
  target_path: reporting/periods.parquet
snapshots:
  - name: addresses_hist
    entity: addresses
    source_path: ./extracts/addresses.csv
    target_path: historical/addresses_hist.parquet
    unique_key: id
    check_cols: [country, region, city, postal_code, address_line1, address_line2, latitude, longitude]
    passthrough_columns: [created_at]
    invalidate_hard_deletes: true
""",
        encoding="utf-8",
    )
    return config_path
