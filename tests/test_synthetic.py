"""Tests for the synthetic extract generators."""

from __future__ import annotations

import random

import pandas as pd
import pytest

from dimensions.lib.synthetic import (
    ADDRESS_COLUMNS,
    CATEGORY_TREE,
    evolve_addresses,
    generate_addresses,
    generate_categories,
)


class TestGenerateAddresses:
    def test_shape_and_ids(self):
        frame = generate_addresses(random.Random(1), 50, start_id=101)

        assert list(frame.columns) == ADDRESS_COLUMNS
        assert frame["id"].tolist() == list(range(101, 151))
        assert (frame["country"] == "GR").all()

    def test_same_seed_same_frame(self):
        left = generate_addresses(random.Random(42), 20)
        right = generate_addresses(random.Random(42), 20)

        pd.testing.assert_frame_equal(left, right)

    def test_different_seed_differs(self):
        left = generate_addresses(random.Random(1), 20)
        right = generate_addresses(random.Random(2), 20)

        assert not left.equals(right)

    def test_coordinates_within_greece(self):
        frame = generate_addresses(random.Random(9), 200)

        assert frame["latitude"].between(34, 40).all()
        assert frame["longitude"].between(19, 27).all()

    def test_zero_rows(self):
        frame = generate_addresses(random.Random(0), 0)

        assert len(frame) == 0
        assert list(frame.columns) == ADDRESS_COLUMNS

    def test_negative_count(self):
        with pytest.raises(ValueError, match="count"):
            generate_addresses(random.Random(0), -1)


class TestEvolveAddresses:
    def test_no_change_rates_return_same_rows(self):
        rng = random.Random(4)
        day1 = generate_addresses(rng, 30)

        day2 = evolve_addresses(rng, day1, change_rate=0.0, delete_rate=0.0)

        assert day2["id"].tolist() == day1["id"].tolist()
        assert day2["city"].tolist() == day1["city"].tolist()

    def test_full_change_rate_alters_every_row(self):
        rng = random.Random(4)
        day1 = generate_addresses(rng, 30)

        day2 = evolve_addresses(rng, day1, change_rate=1.0, delete_rate=0.0)

        tracked = ["region", "city", "postal_code", "address_line1", "address_line2"]
        left = day1.set_index("id")[tracked]
        right = day2.set_index("id")[tracked]
        for address_id in left.index:
            assert left.loc[address_id].tolist() != right.loc[address_id].tolist()

    def test_full_delete_rate_drops_everything(self):
        rng = random.Random(4)
        day1 = generate_addresses(rng, 10)

        assert len(evolve_addresses(rng, day1, delete_rate=1.0)) == 0

    def test_new_rows_get_fresh_ids(self):
        rng = random.Random(4)
        day1 = generate_addresses(rng, 10)

        day2 = evolve_addresses(rng, day1, change_rate=0.0, delete_rate=0.0, new_count=3)

        assert day2["id"].tolist()[-3:] == [11, 12, 13]

    def test_rate_bounds(self):
        day1 = generate_addresses(random.Random(0), 3)

        with pytest.raises(ValueError, match="change_rate"):
            evolve_addresses(random.Random(0), day1, change_rate=1.5)


class TestGenerateCategories:
    def test_tree_shape(self):
        frame = generate_categories(random.Random(0), shuffle=False)

        assert len(frame) == len(CATEGORY_TREE)
        assert frame["parent_id"].isna().sum() == 5
        assert frame["category_id"].tolist() == list(range(1, 17))

    def test_shuffle_keeps_ids(self):
        frame = generate_categories(random.Random(3))

        by_slug = dict(zip(frame["category_slug"], frame["category_id"]))
        assert by_slug["electronics"] == 1
        assert by_slug["mobiles"] == 6

    def test_parents_exist(self):
        frame = generate_categories(random.Random(0))

        parents = set(frame["parent_id"].dropna())
        assert parents <= set(frame["category_id"])
