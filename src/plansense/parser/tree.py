"""
Tree construction from flat plan rows.

Every report dialect yields an ordered list of rows. Text reports only
give an indentation depth per row; XML reports also give an explicit
parent id. This module turns either shape into the arena form used by
ParsedPlan: a pre-order tuple of frozen PlanNodes linked by id.

Parent inference relies on reports being emitted depth-first in
pre-order: the parent of row i is the nearest preceding row with a
strictly smaller depth. The backward scan is O(n^2) in the worst case,
which is fine for plans of a few thousand rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from plansense.parser.models import PlanNode
from plansense.parser.sections import PredicateMap, QueryBlock

logger = logging.getLogger(__name__)


@dataclass
class PlanRow:
    """
    One raw plan row before tree construction.

    Attributes:
        id: Operation id from the report.
        depth: Indentation depth (text) or depth attribute (XML).
        operation: Operation text, already trimmed and non-empty.
        parent_id: Explicit parent id (XML only); None means "infer from depth".
        fields: Remaining PlanNode fields (rows, cost, actual_rows, ...).
        has_star: The id cell carried a '*' predicate marker.
    """

    id: int
    depth: int
    operation: str
    parent_id: int | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    has_star: bool = False


@dataclass(frozen=True)
class TreeResult:
    """
    Output of build_tree: the root id and the pre-order node tuple.

    ``unmatched_stars`` lists ids whose '*' marker has no entry in the
    predicate section (section missing or cut short).
    """

    root_id: int | None
    nodes: tuple[PlanNode, ...]
    dropped: int = 0
    unmatched_stars: tuple[int, ...] = ()


def build_tree(
    rows: list[PlanRow],
    predicates: PredicateMap | None = None,
    query_blocks: Mapping[int, QueryBlock] | None = None,
    *,
    use_explicit_parents: bool = False,
    max_nodes: int | None = None,
) -> TreeResult:
    """
    Link rows into a rooted tree and materialize PlanNodes.

    Args:
        rows: Rows in report order.
        predicates: Side map of id -> {"access": ..., "filter": ...}.
        query_blocks: Side map of id -> QueryBlock.
        use_explicit_parents: Honor PlanRow.parent_id when it names a known row.
        max_nodes: Keep only the first N rows (a pre-order prefix stays a tree).

    Returns:
        TreeResult with root_id None and no nodes when rows is empty.
    """
    predicates = predicates or {}
    query_blocks = query_blocks or {}

    if max_nodes is not None and len(rows) > max_nodes:
        logger.warning(
            "Plan has %d rows, keeping the first %d (max_nodes)", len(rows), max_nodes
        )
        rows = rows[:max_nodes]

    rows = _dedupe(rows)
    if not rows:
        return TreeResult(root_id=None, nodes=())

    by_id = {row.id: row for row in rows}
    root = by_id.get(0, rows[0])

    parents: dict[int, int | None] = {}
    for index, row in enumerate(rows):
        if row is root:
            parents[row.id] = None
            continue
        if use_explicit_parents and row.parent_id in by_id and row.parent_id != row.id:
            parents[row.id] = row.parent_id
        else:
            parents[row.id] = _nearest_shallower(rows, index)

    children: dict[int, list[int]] = {row.id: [] for row in rows}
    for row in rows:
        parent_id = parents[row.id]
        if parent_id is not None:
            children[parent_id].append(row.id)

    nodes = _materialize(root, by_id, children, predicates, query_blocks)

    dropped = len(rows) - len(nodes)
    if dropped:
        logger.warning(
            "%d plan row(s) are not reachable from root id %d and were dropped",
            dropped,
            root.id,
        )

    unmatched_stars = tuple(
        node.id for node in nodes if by_id[node.id].has_star and node.id not in predicates
    )
    if unmatched_stars:
        logger.warning(
            "Operation(s) %s are marked '*' but have no predicate entry",
            ", ".join(str(node_id) for node_id in unmatched_stars),
        )

    return TreeResult(
        root_id=root.id,
        nodes=tuple(nodes),
        dropped=dropped,
        unmatched_stars=unmatched_stars,
    )


def _dedupe(rows: list[PlanRow]) -> list[PlanRow]:
    """Keep the first row for each id."""
    seen: set[int] = set()
    unique: list[PlanRow] = []
    for row in rows:
        if row.id in seen:
            logger.warning("Duplicate plan row id %d ignored", row.id)
            continue
        seen.add(row.id)
        unique.append(row)
    return unique


def _nearest_shallower(rows: list[PlanRow], index: int) -> int | None:
    depth = rows[index].depth
    for candidate in reversed(rows[:index]):
        if candidate.depth < depth:
            return candidate.id
    return None


def _materialize(
    root: PlanRow,
    by_id: dict[int, PlanRow],
    children: dict[int, list[int]],
    predicates: PredicateMap,
    query_blocks: Mapping[int, QueryBlock],
) -> list[PlanNode]:
    """Walk the tree in pre-order and build frozen nodes."""
    nodes: list[PlanNode] = []
    visited: set[int] = set()

    # (row id, parent id, parent depth)
    stack: list[tuple[int, int | None, int | None]] = [(root.id, None, None)]
    while stack:
        row_id, parent_id, parent_depth = stack.pop()
        if row_id in visited:
            continue
        visited.add(row_id)

        row = by_id[row_id]
        depth = row.depth
        if parent_depth is not None and depth <= parent_depth:
            depth = parent_depth + 1

        child_ids = tuple(cid for cid in children[row_id] if cid not in visited)
        nodes.append(
            _make_node(row, depth, parent_id, child_ids, predicates, query_blocks)
        )

        for cid in reversed(child_ids):
            stack.append((cid, row_id, depth))

    return nodes


def _make_node(
    row: PlanRow,
    depth: int,
    parent_id: int | None,
    child_ids: tuple[int, ...],
    predicates: PredicateMap,
    query_blocks: Mapping[int, QueryBlock],
) -> PlanNode:
    values: dict[str, Any] = {k: v for k, v in row.fields.items() if v is not None}

    row_predicates = predicates.get(row.id, {})
    if "access" in row_predicates:
        values.setdefault("access_predicates", row_predicates["access"])
    if "filter" in row_predicates:
        values.setdefault("filter_predicates", row_predicates["filter"])

    block = query_blocks.get(row.id)
    if block is not None:
        values.setdefault("query_block", block.query_block)
        if block.object_alias:
            values.setdefault("object_alias", block.object_alias)

    object_alias = values.get("object_alias")
    if object_alias and "alias" not in values:
        values["alias"] = object_alias.split("@", 1)[0].strip('"')

    return PlanNode(
        id=row.id,
        depth=depth,
        parent_id=parent_id,
        child_ids=child_ids,
        operation=row.operation,
        **values,
    )
