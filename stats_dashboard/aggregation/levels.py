"""
Hierarchy Levels and Node Ids

A node id is the colon-joined path supplier[:brand[:type[:article]]]; the
number of separators determines the level, so a single node shape serves
every depth of the tree.
"""

from enum import Enum
from typing import Optional

NODE_ID_SEPARATOR = ":"


class Level(str, Enum):
    """Hierarchy levels, root first"""
    SUPPLIER = "supplier"
    BRAND = "brand"
    TYPE = "type"
    ARTICLE = "article"


ORDERED_LEVELS = (Level.SUPPLIER, Level.BRAND, Level.TYPE, Level.ARTICLE)

LEVEL_LABELS = {
    Level.SUPPLIER: "Supplier",
    Level.BRAND: "Brand",
    Level.TYPE: "Type",
    Level.ARTICLE: "Article",
}


def create_node_id(
    supplier: str,
    brand: Optional[str] = None,
    type: Optional[str] = None,
    article: Optional[str] = None,
) -> str:
    """Build the id of the deepest node named by the given segments."""
    segments = [supplier]
    for segment in (brand, type, article):
        if segment is None:
            break
        segments.append(segment)
    return NODE_ID_SEPARATOR.join(segments)


def level_of(node_id: str) -> Level:
    """Level of a node, derived from its separator count."""
    depth = node_id.count(NODE_ID_SEPARATOR)
    if depth >= len(ORDERED_LEVELS):
        raise ValueError(f"Node id has too many segments: {node_id!r}")
    return ORDERED_LEVELS[depth]


def parent_id(node_id: str) -> Optional[str]:
    """Id of the immediate parent, or None for a supplier node."""
    head, sep, _ = node_id.rpartition(NODE_ID_SEPARATOR)
    return head if sep else None


def name_from_node_id(node_id: str, level: Optional[Level] = None) -> str:
    """
    Segment naming the node at the given level.

    Example:
        name_from_node_id("acme:zeta:shoes", Level.BRAND) == "zeta"
    """
    target = level or level_of(node_id)
    index = ORDERED_LEVELS.index(target)
    parts = node_id.split(NODE_ID_SEPARATOR)
    return parts[index] if index < len(parts) else ""
