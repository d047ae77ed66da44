"""Smoke tests for the bundled example job and project file."""

from __future__ import annotations

from pathlib import Path

import pytest

import dimensions
from dimensions.examples import addresses_hist
from dimensions.lib.config_loader import load_project
from dimensions.lib.observability import JobMetrics
from dimensions.lib.settings import DimensionSettings

EXAMPLES = Path(dimensions.__file__).parent / "examples"


@pytest.fixture
def sample_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(addresses_hist, "SAMPLE_DIR", tmp_path / "sample_data")
    monkeypatch.setattr(addresses_hist, "HISTORY_PATH", tmp_path / "sample_data" / "hist.parquet")
    return tmp_path / "sample_data"


def test_addresses_example_end_to_end(sample_dir, capsys):
    addresses_hist.create_sample_data(days=3, rows=40, seed=7)

    results = addresses_hist.run_all(days=3)

    assert len(results) == 3
    assert results[0]["inserts"] == 40
    assert results[0]["_job"] == "addresses_hist"
    assert all(r["expirations"] >= r["deleted"] for r in results)
    assert "current addresses after 3 runs" in capsys.readouterr().out


def test_ecommerce_project_file_loads(tmp_path, monkeypatch):
    monkeypatch.setenv("SAMPLE_DATA_DIR", str(tmp_path))

    project = load_project(EXAMPLES / "configs" / "ecommerce.yaml", DimensionSettings(warehouse_root=str(tmp_path)))

    assert project.calendar.granularities == ["Day", "Week", "Month", "Quarter", "Year"]
    job = project.snapshot("addresses_hist")
    assert job.source_path == str(tmp_path / "addresses_2025-01-01.csv")
    assert job.invalidate_hard_deletes is True


def test_job_metrics_summary():
    metrics = JobMetrics("addresses_hist", entity="addresses")
    with metrics.time_phase("plan"):
        pass
    metrics.record("inserts", 4, unit="rows")

    summary = metrics.summary()

    assert summary["phases"].keys() == {"plan"}
    assert summary["metrics"] == {"inserts": 4}
    assert metrics.metrics[0].to_dict()["unit"] == "rows"
