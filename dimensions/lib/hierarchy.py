"""Category hierarchy flattening.

Turns a flat (category_id, parent_id, category_name) table into one row
per category carrying its root, depth and a readable path such as
"Electronics > Phones > Smartphones". The tree is walked breadth-first
with an explicit queue, so depth is bounded by memory, not the stack.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from dimensions.lib.errors import HierarchyError
from dimensions.lib.fingerprint import is_null

logger = logging.getLogger(__name__)

__all__ = ["HierarchyRow", "PATH_SEPARATOR", "build_category_hierarchy", "hierarchy_to_frame"]

PATH_SEPARATOR = " > "


@dataclass(frozen=True)
class HierarchyRow:
    category_id: Any
    parent_id: Optional[Any]
    category_name: str
    root_category_id: Any
    root_category_name: str
    depth: int
    category_path: str


def _sort_token(value: Any):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


def _records(rows: Any) -> List[Dict[str, Any]]:
    if isinstance(rows, pd.DataFrame):
        return rows.astype(object).where(rows.notna(), None).to_dict("records")
    return [dict(r) for r in rows]


def build_category_hierarchy(
    rows: Any,
    *,
    id_column: str = "category_id",
    parent_column: str = "parent_id",
    name_column: str = "category_name",
    strict: bool = False,
) -> List[HierarchyRow]:
    """Walk the category tree from its roots.

    Args:
        rows: DataFrame or iterable of mappings
        id_column: Category id column
        parent_column: Parent id column (null for roots)
        name_column: Category name column
        strict: Raise instead of dropping unreachable categories

    Returns:
        Rows ordered by (root_category_id, depth, category_id)

    Raises:
        HierarchyError: On duplicate ids, or on orphans and cycles when
            strict is set
    """
    records = _records(rows)
    nodes: Dict[Any, Mapping[str, Any]] = {}
    children: Dict[Any, List[Any]] = defaultdict(list)
    roots: List[Any] = []

    for record in records:
        category_id = record[id_column]
        if category_id in nodes:
            raise HierarchyError(f"Duplicate {id_column} {category_id!r}")
        nodes[category_id] = record
        parent_id = record.get(parent_column)
        if is_null(parent_id):
            roots.append(category_id)
        else:
            children[parent_id].append(category_id)

    queue: Deque[HierarchyRow] = deque()
    for root_id in sorted(roots, key=_sort_token):
        name = str(nodes[root_id][name_column])
        queue.append(
            HierarchyRow(
                category_id=root_id,
                parent_id=None,
                category_name=name,
                root_category_id=root_id,
                root_category_name=name,
                depth=0,
                category_path=name,
            )
        )

    result: List[HierarchyRow] = []
    visited = set()
    while queue:
        row = queue.popleft()
        visited.add(row.category_id)
        result.append(row)
        for child_id in sorted(children.get(row.category_id, ()), key=_sort_token):
            name = str(nodes[child_id][name_column])
            queue.append(
                HierarchyRow(
                    category_id=child_id,
                    parent_id=row.category_id,
                    category_name=name,
                    root_category_id=row.root_category_id,
                    root_category_name=row.root_category_name,
                    depth=row.depth + 1,
                    category_path=f"{row.category_path}{PATH_SEPARATOR}{name}",
                )
            )

    unreachable = sorted((k for k in nodes if k not in visited), key=_sort_token)
    if unreachable:
        message = (
            f"{len(unreachable)} categories are not reachable from a root "
            f"(missing parent or cycle): {unreachable[:10]}"
        )
        if strict:
            raise HierarchyError(message, details={"unreachable": unreachable})
        logger.warning(message)

    result.sort(key=lambda r: (_sort_token(r.root_category_id), r.depth, _sort_token(r.category_id)))
    return result


def hierarchy_to_frame(rows: Iterable[HierarchyRow]) -> pd.DataFrame:
    columns = list(HierarchyRow.__dataclass_fields__)
    return pd.DataFrame([asdict(r) for r in rows], columns=columns)
