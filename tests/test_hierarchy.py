"""Tests for category hierarchy flattening."""

from __future__ import annotations

import logging
import random

import pandas as pd
import pytest

from dimensions.lib.errors import HierarchyError
from dimensions.lib.hierarchy import build_category_hierarchy, hierarchy_to_frame
from dimensions.lib.jobs import build_hierarchy_file
from dimensions.lib.synthetic import generate_categories


def node(category_id, parent_id, name):
    return {"category_id": category_id, "parent_id": parent_id, "category_name": name}


class TestSeedTree:
    """The e-commerce category tree: five roots, eleven subcategories."""

    @pytest.fixture
    def rows(self):
        return build_category_hierarchy(generate_categories(random.Random(5)))

    def test_every_category_present(self, rows):
        assert len(rows) == 16
        assert sum(1 for r in rows if r.depth == 0) == 5

    def test_paths(self, rows):
        paths = {r.category_name: r.category_path for r in rows}

        assert paths["Electronics"] == "Electronics"
        assert paths["Mobiles"] == "Electronics > Mobiles"
        assert paths["Skincare"] == "Health & Beauty > Skincare"

    def test_roots_and_depths(self, rows):
        by_name = {r.category_name: r for r in rows}

        assert by_name["Cycling"].root_category_name == "Sports & Outdoors"
        assert by_name["Cycling"].depth == 1
        assert by_name["Cycling"].parent_id == by_name["Sports & Outdoors"].category_id

    def test_order_independent_of_input_shuffle(self):
        first = build_category_hierarchy(generate_categories(random.Random(1)))
        second = build_category_hierarchy(generate_categories(random.Random(2)))

        assert first == second

    def test_result_ordering(self, rows):
        keys = [(r.root_category_id, r.depth, r.category_id) for r in rows]
        assert keys == sorted(keys)


class TestDeepTrees:
    def test_three_levels(self):
        rows = build_category_hierarchy(
            [
                node(1, None, "Electronics"),
                node(2, 1, "Phones"),
                node(3, 2, "Smartphones"),
            ]
        )

        assert rows[-1].category_path == "Electronics > Phones > Smartphones"
        assert rows[-1].depth == 2
        assert rows[-1].root_category_id == 1

    def test_long_chain_does_not_recurse(self):
        chain = [node(1, None, "c1")] + [node(i, i - 1, f"c{i}") for i in range(2, 3001)]

        rows = build_category_hierarchy(chain)

        assert rows[-1].depth == 2999


class TestUnreachable:
    def test_orphan_dropped_with_warning(self, caplog):
        data = [node(1, None, "Root"), node(2, 99, "Orphan")]

        with caplog.at_level(logging.WARNING):
            rows = build_category_hierarchy(data)

        assert [r.category_id for r in rows] == [1]
        assert "not reachable" in caplog.text

    def test_cycle_dropped(self):
        data = [node(1, None, "Root"), node(2, 3, "A"), node(3, 2, "B")]

        assert [r.category_id for r in build_category_hierarchy(data)] == [1]

    def test_strict_raises(self):
        data = [node(1, None, "Root"), node(2, 3, "A"), node(3, 2, "B")]

        with pytest.raises(HierarchyError) as exc_info:
            build_category_hierarchy(data, strict=True)

        assert exc_info.value.details["unreachable"] == [2, 3]

    def test_duplicate_id(self):
        with pytest.raises(HierarchyError, match="Duplicate category_id 1"):
            build_category_hierarchy([node(1, None, "A"), node(1, None, "B")])


class TestFrames:
    def test_custom_column_names(self):
        frame = pd.DataFrame({"id": [1, 2], "parent": [None, 1], "name": ["Home", "Kitchen"]})

        rows = build_category_hierarchy(frame, id_column="id", parent_column="parent", name_column="name")

        assert [r.category_path for r in rows] == ["Home", "Home > Kitchen"]

    def test_hierarchy_to_frame_columns(self):
        frame = hierarchy_to_frame(build_category_hierarchy([node(1, None, "Root")]))

        assert list(frame.columns) == [
            "category_id",
            "parent_id",
            "category_name",
            "root_category_id",
            "root_category_name",
            "depth",
            "category_path",
        ]

    def test_build_hierarchy_file(self, tmp_path):
        source = tmp_path / "categories.csv"
        generate_categories(random.Random(0)).to_csv(source, index=False)

        metadata = build_hierarchy_file(source, tmp_path / "out" / "category_hierarchy.parquet")

        assert metadata.row_count == 16
        written = pd.read_parquet(tmp_path / "out" / "category_hierarchy.parquet")
        assert "Electronics > Laptops" in set(written["category_path"])
