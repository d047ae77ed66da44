"""Tests for curate.py read-only views over history tables.

- current_view: one open version per id
- as_of_view: versions in effect at a point in time
- version_counts: number of versions recorded per id
"""
