"""
Example Job: Addresses SCD Type 2
=================================
Keeps full change history of customer addresses from daily extracts.

This example shows:
- A SnapshotConfig tracking the physical address columns
- Hard deletes closing the current version (invalidate_hard_deletes)
- The current view read back through Ibis

Setup:
    python -c "from dimensions.examples.addresses_hist import create_sample_data; create_sample_data()"

Run:
    python -c "from dimensions.examples.addresses_hist import run_all; run_all()"

Output columns:
    - id: Natural key
    - country .. longitude: Tracked attributes
    - created_at: Carried along, not tracked
    - valid_from / valid_to: Validity interval (valid_to NULL if current)
    - fingerprint, scd_id, updated_at: Bookkeeping
"""

import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

from dimensions.lib import curate
from dimensions.lib.io import read_extract
from dimensions.lib.runner import timed_job
from dimensions.lib.snapshot import SnapshotConfig, apply_snapshot
from dimensions.lib.store import ParquetHistoryStore
from dimensions.lib.synthetic import evolve_addresses, generate_addresses

SAMPLE_DIR = Path(__file__).parent / "sample_data"
HISTORY_PATH = SAMPLE_DIR / "warehouse" / "addresses_hist.parquet"
FIRST_DAY = datetime(2025, 1, 15, 2, 0, 0)

config = SnapshotConfig(
    entity="addresses",
    unique_key="id",
    tracked_columns=[
        "country",
        "region",
        "city",
        "postal_code",
        "address_line1",
        "address_line2",
        "latitude",
        "longitude",
    ],
    passthrough_columns=["created_at"],
    invalidate_hard_deletes=True,
)


def extract_path(as_of: datetime) -> Path:
    return SAMPLE_DIR / f"addresses_{as_of.date().isoformat()}.csv"


@timed_job("addresses_hist")
def run(as_of: datetime, history_path: Path = HISTORY_PATH) -> Dict[str, Any]:
    store = ParquetHistoryStore(history_path, unique_key="id", job_name="addresses_hist")
    extract = read_extract(extract_path(as_of), typed_columns=[config.unique_key])
    plan = apply_snapshot(store, extract, config, as_of)
    return plan.summary()


def run_all(days: int = 3) -> List[Dict[str, Any]]:
    """Apply every sample extract in order and print the current row count."""
    results = [run(FIRST_DAY + timedelta(days=day), HISTORY_PATH) for day in range(days)]
    current = curate.current_view(curate.read_history(str(HISTORY_PATH))).count().execute()
    print(f"{current} current addresses after {days} runs")
    return results


def create_sample_data(days: int = 3, rows: int = 100, seed: int = 7) -> Path:
    """Create one address extract per day, each evolved from the last."""
    SAMPLE_DIR.mkdir(parents=True, exist_ok=True)
    rng = random.Random(seed)

    extract = generate_addresses(rng, rows, base_time=FIRST_DAY)
    for day in range(days):
        as_of = FIRST_DAY + timedelta(days=day)
        if day:
            extract = evolve_addresses(rng, extract, 0.1, 0.03, 5, base_time=as_of)
        extract.to_csv(extract_path(as_of), index=False)

    print(f"Created {days} address extracts in {SAMPLE_DIR}")
    return SAMPLE_DIR
