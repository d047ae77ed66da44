"""Synthetic source extracts for demos and tests.

Generates address and category tables shaped like the e-commerce source
system, plus successive address extracts with a controlled mix of
changes, deletions and new rows. Every function takes an explicit
random.Random so output is reproducible from a seed.

Example:
    rng = random.Random(42)
    day1 = generate_addresses(rng, 200)
    day2 = evolve_addresses(rng, day1, change_rate=0.1, delete_rate=0.02, new_count=5)
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

__all__ = [
    "ADDRESS_COLUMNS",
    "CATEGORY_TREE",
    "evolve_addresses",
    "generate_addresses",
    "generate_categories",
]

ADDRESS_COLUMNS = [
    "id",
    "country",
    "region",
    "city",
    "postal_code",
    "address_line1",
    "address_line2",
    "latitude",
    "longitude",
    "created_at",
]

REGIONS = ["Attica", "Central Macedonia", "Thessaly", "Crete", "Epirus"]
CITIES = ["Athens", "Thessaloniki", "Patras", "Heraklion", "Larissa", "Volos", "Chania"]
STREET_SUFFIXES = ["A", "B", "C", "D", "E"]

# (name, slug, parent slug)
CATEGORY_TREE = [
    ("Electronics", "electronics", None),
    ("Home & Living", "home-living", None),
    ("Sports & Outdoors", "sports-outdoors", None),
    ("Health & Beauty", "health-beauty", None),
    ("Toys & Hobbies", "toys-hobbies", None),
    ("Mobiles", "mobiles", "electronics"),
    ("Laptops", "laptops", "electronics"),
    ("Headphones", "headphones", "electronics"),
    ("Furniture", "furniture", "home-living"),
    ("Kitchen", "kitchen", "home-living"),
    ("Fitness", "fitness", "sports-outdoors"),
    ("Cycling", "cycling", "sports-outdoors"),
    ("Supplements", "supplements", "health-beauty"),
    ("Skincare", "skincare", "health-beauty"),
    ("Board Games", "board-games", "toys-hobbies"),
    ("RC Models", "rc-models", "toys-hobbies"),
]

DEFAULT_BASE_TIME = datetime(2025, 1, 1)


def _street(rng: random.Random) -> str:
    return f"Street {rng.randint(1, 300)} {rng.choice(STREET_SUFFIXES)}"


def _apartment(rng: random.Random) -> Optional[str]:
    return f"Apt {rng.randint(1, 50)}" if rng.random() < 0.2 else None


def _address(rng: random.Random, address_id: int, base_time: datetime) -> Dict[str, Any]:
    return {
        "id": address_id,
        "country": "GR",
        "region": rng.choice(REGIONS),
        "city": rng.choice(CITIES),
        "postal_code": f"{rng.randint(10000, 99999):05d}",
        "address_line1": _street(rng),
        "address_line2": _apartment(rng),
        "latitude": round(34 + rng.random() * 6, 6),
        "longitude": round(19 + rng.random() * 8, 6),
        "created_at": base_time - timedelta(days=rng.randint(0, 800)),
    }


def generate_addresses(
    rng: random.Random,
    count: int,
    start_id: int = 1,
    *,
    base_time: datetime = DEFAULT_BASE_TIME,
) -> pd.DataFrame:
    """Generate an address extract with ids start_id .. start_id + count - 1.

    Args:
        rng: Random source
        count: Number of rows
        start_id: First id
        base_time: created_at values fall up to 800 days before this

    Returns:
        DataFrame with ADDRESS_COLUMNS
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    rows = [_address(rng, start_id + i, base_time) for i in range(count)]
    return pd.DataFrame(rows, columns=ADDRESS_COLUMNS)


def _change(rng: random.Random, row: Dict[str, Any]) -> Dict[str, Any]:
    """Alter one or two tracked fields of an address (a move or a correction)."""
    changed = dict(row)
    kind = rng.choice(["move", "street", "apartment", "postal_code"])
    if kind == "move":
        changed["region"] = rng.choice([r for r in REGIONS if r != row["region"]])
        changed["city"] = rng.choice([c for c in CITIES if c != row["city"]])
    elif kind == "street":
        changed["address_line1"] = f"{row['address_line1']} bis"
    elif kind == "apartment":
        changed["address_line2"] = None if row["address_line2"] else f"Apt {rng.randint(1, 50)}"
    else:
        changed["postal_code"] = f"{(int(row['postal_code']) + rng.randint(1, 999)) % 100000:05d}"
    return changed


def evolve_addresses(
    rng: random.Random,
    rows: pd.DataFrame,
    change_rate: float = 0.1,
    delete_rate: float = 0.02,
    new_count: int = 0,
    *,
    base_time: datetime = DEFAULT_BASE_TIME,
) -> pd.DataFrame:
    """Produce the next extract from a previous one.

    Each surviving row is changed with probability change_rate; each row is
    dropped with probability delete_rate; new_count rows are appended with
    fresh ids above the current maximum.
    """
    for name, rate in (("change_rate", change_rate), ("delete_rate", delete_rate)):
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"{name} must be between 0 and 1, got {rate}")

    result: List[Dict[str, Any]] = []
    for row in rows.astype(object).where(rows.notna(), None).to_dict("records"):
        if rng.random() < delete_rate:
            continue
        if rng.random() < change_rate:
            row = _change(rng, row)
        result.append(row)

    next_id = int(rows["id"].max()) + 1 if len(rows) else 1
    for i in range(new_count):
        result.append(_address(rng, next_id + i, base_time))

    return pd.DataFrame(result, columns=ADDRESS_COLUMNS)


def generate_categories(
    rng: random.Random,
    *,
    shuffle: bool = True,
) -> pd.DataFrame:
    """Generate the category tree as (category_id, parent_id, category_name, category_slug).

    Ids follow declaration order (roots first), as a serial key would. Row
    order is shuffled unless shuffle=False, so consumers cannot rely on it.
    """
    ids = {slug: i + 1 for i, (_, slug, _) in enumerate(CATEGORY_TREE)}
    rows = [
        {
            "category_id": ids[slug],
            "parent_id": ids[parent] if parent else None,
            "category_name": name,
            "category_slug": slug,
        }
        for name, slug, parent in CATEGORY_TREE
    ]
    if shuffle:
        rng.shuffle(rows)
    frame = pd.DataFrame(rows, columns=["category_id", "parent_id", "category_name", "category_slug"])
    frame["parent_id"] = frame["parent_id"].astype("Int64")
    return frame
