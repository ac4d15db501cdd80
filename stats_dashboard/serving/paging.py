"""
Tree Paging

Server-side row model for the hierarchical grid: one level of the tree at a
time, sliced to the requested row window, with the level's total row count
for infinite scrolling.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from stats_dashboard.aggregation.engine import WireNode
from stats_dashboard.aggregation.levels import LEVEL_LABELS, NODE_ID_SEPARATOR, level_of, name_from_node_id


@dataclass
class RowsPage:
    """One page of grid rows"""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


def to_grid_row(node_id: str, node: WireNode) -> Dict[str, Any]:
    """Wire node plus the id and display fields the grid needs"""
    level = level_of(node_id)
    return {
        **node,
        "id": node_id,
        "level": level.value,
        "levelLabel": LEVEL_LABELS[level],
        "name": name_from_node_id(node_id, level),
        "group": bool(node.get("childIds")),
    }


def level_ids(tree: Mapping[str, WireNode], group_keys: Sequence[str]) -> List[str]:
    """Ids of the level under the last expanded group (roots when none)"""
    if not group_keys:
        return [node_id for node_id in tree if NODE_ID_SEPARATOR not in node_id]

    parent = tree.get(group_keys[-1])
    if parent is None:
        return []
    return [child_id for child_id in parent.get("childIds", []) if child_id in tree]


def get_rows(
    tree: Mapping[str, WireNode],
    group_keys: Sequence[str],
    start_row: int = 0,
    end_row: Optional[int] = None,
) -> RowsPage:
    """
    Page through one level of the tree.

    Args:
        tree: wire tree of one metric
        group_keys: expanded ancestor ids, root first; empty for the root level
        start_row: first row (inclusive)
        end_row: last row (exclusive); None for the rest of the level

    Returns:
        The rows of [start_row, end_row) and the level's total row count
    """
    ids = level_ids(tree, group_keys)
    start = max(0, start_row)
    window = ids[start:end_row] if end_row is not None else ids[start:]
    return RowsPage(
        rows=[to_grid_row(node_id, tree[node_id]) for node_id in window],
        row_count=len(ids),
    )
