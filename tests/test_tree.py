"""
Tests for tree construction from flat plan rows.
"""

from __future__ import annotations

import logging

import pytest

from plansense.parser.sections import QueryBlock
from plansense.parser.tree import PlanRow, TreeResult, build_tree


def row(node_id: int, depth: int, operation: str = "OP", parent_id: int | None = None, **fields) -> PlanRow:
    """Shorthand for a PlanRow."""
    return PlanRow(id=node_id, depth=depth, operation=operation, parent_id=parent_id, fields=fields)


def children(result: TreeResult) -> dict[int, tuple[int, ...]]:
    return {node.id: node.child_ids for node in result.nodes}


# =============================================================================
# Depth inference
# =============================================================================

class TestDepthInference:
    """Parent = nearest preceding row with a smaller depth."""

    def test_simple_tree(self) -> None:
        result = build_tree([row(0, 0), row(1, 1), row(2, 2), row(3, 2), row(4, 1)])

        assert result.root_id == 0
        assert children(result) == {0: (1, 4), 1: (2, 3), 2: (), 3: (), 4: ()}
        assert result.dropped == 0

    def test_preorder_output(self) -> None:
        result = build_tree([row(0, 1), row(1, 2), row(2, 3), row(3, 2)])
        assert [node.id for node in result.nodes] == [0, 1, 2, 3]

    def test_depth_jumps(self) -> None:
        """Indentation may grow by more than one level."""
        result = build_tree([row(0, 1), row(1, 4), row(2, 2)])

        assert children(result)[0] == (1, 2)
        assert [node.depth for node in result.nodes] == [1, 4, 2]

    def test_empty(self) -> None:
        result = build_tree([])
        assert result.root_id is None
        assert result.nodes == ()

    def test_root_without_id_zero(self) -> None:
        result = build_tree([row(5, 0), row(6, 1)])
        assert result.root_id == 5
        assert children(result) == {5: (6,), 6: ()}

    def test_unreachable_rows_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            result = build_tree([row(0, 1), row(1, 2), row(2, 0)])

        assert [node.id for node in result.nodes] == [0, 1]
        assert result.dropped == 1
        assert "not reachable" in caplog.text


# =============================================================================
# Explicit parents
# =============================================================================

class TestExplicitParents:
    """XML rows carry parent ids."""

    def test_parent_ids_win_over_depth(self) -> None:
        rows = [row(0, 0), row(1, 1, parent_id=0), row(2, 1, parent_id=1)]
        result = build_tree(rows, use_explicit_parents=True)

        assert children(result) == {0: (1,), 1: (2,), 2: ()}
        # Depth is forced below the parent
        assert result.nodes[2].depth == 2

    def test_parent_ids_ignored_without_flag(self) -> None:
        rows = [row(0, 0), row(1, 1, parent_id=0), row(2, 1, parent_id=1)]
        result = build_tree(rows)

        assert children(result)[0] == (1, 2)

    def test_cycle_is_unreachable(self) -> None:
        rows = [row(0, 0), row(1, 1, parent_id=2), row(2, 2, parent_id=1)]
        result = build_tree(rows, use_explicit_parents=True)

        assert [node.id for node in result.nodes] == [0]
        assert result.dropped == 2

    def test_self_parent_falls_back_to_depth(self) -> None:
        rows = [row(0, 0), row(1, 1, parent_id=1)]
        result = build_tree(rows, use_explicit_parents=True)

        assert children(result)[0] == (1,)


# =============================================================================
# Limits and side maps
# =============================================================================

class TestLimitsAndSideMaps:
    """Duplicates, max_nodes, predicates and query blocks."""

    def test_duplicate_ids_keep_first(self) -> None:
        result = build_tree([row(0, 0), row(1, 1, "FIRST"), row(1, 1, "SECOND")])

        assert len(result.nodes) == 2
        assert result.nodes[1].operation == "FIRST"

    def test_max_nodes(self) -> None:
        rows = [row(i, i) for i in range(10)]
        result = build_tree(rows, max_nodes=3)

        assert [node.id for node in result.nodes] == [0, 1, 2]
        assert result.nodes[-1].is_leaf

    def test_predicates_and_query_blocks(self) -> None:
        result = build_tree(
            [row(0, 0), row(1, 1, object_name="EMP")],
            predicates={1: {"access": '"E"."ID"=1', "filter": '"E"."X">0'}},
            query_blocks={1: QueryBlock(query_block="SEL$1", object_alias="E@SEL$1")},
        )

        node = result.nodes[1]
        assert node.access_predicates == '"E"."ID"=1'
        assert node.filter_predicates == '"E"."X">0'
        assert node.query_block == "SEL$1"
        assert node.object_alias == "E@SEL$1"
        assert node.alias == "E"
        assert node.object_name == "EMP"

    def test_row_fields_win_over_side_maps(self) -> None:
        result = build_tree(
            [row(0, 0, query_block="SEL$X")],
            query_blocks={0: QueryBlock(query_block="SEL$1")},
        )
        assert result.nodes[0].query_block == "SEL$X"

    def test_quoted_alias(self) -> None:
        result = build_tree([row(0, 0, object_alias='"D"@"SEL$1"')])
        assert result.nodes[0].alias == "D"

    def test_none_fields_use_model_defaults(self) -> None:
        result = build_tree([row(0, 0, rows=None, cost=3)])
        assert result.nodes[0].rows is None
        assert result.nodes[0].cost == 3


class TestPredicateMarkers:
    """Rows marked '*' are cross-checked against the predicate section."""

    def test_starred_rows_with_predicates(self, caplog: pytest.LogCaptureFixture) -> None:
        rows = [row(0, 0), row(1, 1)]
        rows[1].has_star = True

        with caplog.at_level(logging.WARNING):
            result = build_tree(rows, predicates={1: {"filter": '"E"."X">0'}})

        assert result.unmatched_stars == ()
        assert "no predicate entry" not in caplog.text

    def test_starred_row_without_entry(self, caplog: pytest.LogCaptureFixture) -> None:
        rows = [row(0, 0), row(1, 1), row(2, 1)]
        rows[1].has_star = True
        rows[2].has_star = True

        with caplog.at_level(logging.WARNING):
            result = build_tree(rows, predicates={1: {"access": '"E"."ID"=1'}})

        assert result.unmatched_stars == (2,)
        assert "no predicate entry" in caplog.text
        assert result.nodes[2].filter_predicates is None

    def test_unmarked_rows_ignored(self) -> None:
        result = build_tree([row(0, 0), row(1, 1)])
        assert result.unmatched_stars == ()
