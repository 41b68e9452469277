"""
Tests for the DBMS_XPLAN text parser.

Test philosophy:
- Real report shapes parse into the expected tree
- Column positions come from the header, not from fixed offsets
- Bad or missing content yields an empty plan, never an exception
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from plansense.parser import ParsedPlan, PlanSource, parse_xplan_text
from plansense.parser.config import ParserConfig
from plansense.parser.xplan import parse_cost_cell


# =============================================================================
# Fixtures
# =============================================================================

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    """Load a report fixture as text."""
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
def basic_plan() -> ParsedPlan:
    """Nested loops join with index access and two overflowing rows."""
    return parse_xplan_text(load_fixture("xplan_basic.txt"))


@pytest.fixture
def tempspc_plan() -> ParsedPlan:
    """Two views joined, with TempSpc and Time columns."""
    return parse_xplan_text(load_fixture("xplan_tempspc.txt"))


@pytest.fixture
def allstats_plan() -> ParsedPlan:
    """DISPLAY_CURSOR with ALLSTATS LAST runtime columns."""
    return parse_xplan_text(load_fixture("xplan_allstats.txt"))


def assert_tree_invariants(plan: ParsedPlan) -> None:
    """Every non-root node has exactly one parent, shallower than itself."""
    assert plan.root_node is not None
    ids = [node.id for node in plan.nodes]
    assert len(ids) == len(set(ids))
    assert plan.nodes[0].id == plan.root_id

    for node in plan.nodes:
        if node.id == plan.root_id:
            assert node.parent_id is None
            continue
        parent = plan.parent_of(node)
        assert parent is not None
        assert parent.depth < node.depth
        assert parent.child_ids.count(node.id) == 1


# =============================================================================
# Happy Path Tests
# =============================================================================

class TestParseBasicPlan:
    """Standard DISPLAY output with query blocks and predicates."""

    def test_metadata(self, basic_plan: ParsedPlan) -> None:
        assert basic_plan.source is PlanSource.DBMS_XPLAN
        assert basic_plan.plan_hash_value == "1234567890"
        assert basic_plan.sql_id is None
        assert basic_plan.has_actual_stats is False

    def test_all_rows_become_nodes(self, basic_plan: ParsedPlan) -> None:
        assert len(basic_plan) == 8
        assert [node.id for node in basic_plan.nodes] == [0, 1, 2, 3, 4, 5, 6, 7]

    def test_tree_shape(self, basic_plan: ParsedPlan) -> None:
        root = basic_plan.root_node
        assert root is not None
        assert root.id == 0
        assert root.operation == "SELECT STATEMENT"
        assert root.child_ids == (1,)

        assert basic_plan.get_node(1).child_ids == (2, 7)
        assert basic_plan.get_node(2).child_ids == (3, 5)
        assert basic_plan.get_node(3).child_ids == (4,)
        assert basic_plan.get_node(5).child_ids == (6,)
        assert basic_plan.get_node(7).is_leaf
        assert_tree_invariants(basic_plan)

    def test_estimates(self, basic_plan: ParsedPlan) -> None:
        root = basic_plan.get_node(0)
        assert root.rows == 10
        assert root.bytes == 500
        assert root.cost == 25
        assert root.cpu_percent == 4

        index_scan = basic_plan.get_node(4)
        assert index_scan.operation == "INDEX RANGE SCAN"
        assert index_scan.object_name == "EMP_DEPT_IX"
        assert index_scan.rows == 5
        assert index_scan.bytes is None
        assert index_scan.cost == 2

    def test_operation_wider_than_column(self, basic_plan: ParsedPlan) -> None:
        """Rows whose operation pushes the pipes right still split correctly."""
        node = basic_plan.get_node(3)
        assert node.operation == "TABLE ACCESS BY INDEX ROWID"
        assert node.object_name == "EMPLOYEES"
        assert node.rows == 5
        assert node.bytes == 100
        assert node.cost == 7

    def test_predicates_attached(self, basic_plan: ParsedPlan) -> None:
        assert basic_plan.get_node(4).access_predicates == '"E"."DEPARTMENT_ID"=:dept_id'
        assert basic_plan.get_node(6).access_predicates == '"E"."JOB_ID"="J"."JOB_ID"'
        assert basic_plan.get_node(4).filter_predicates is None
        assert not basic_plan.get_node(3).has_predicates

    def test_query_blocks_and_aliases(self, basic_plan: ParsedPlan) -> None:
        node = basic_plan.get_node(4)
        assert node.query_block == "SEL$1"
        assert node.object_alias == "E@SEL$1"
        assert node.alias == "E"

        assert basic_plan.get_node(1).query_block == "SEL$1"
        assert basic_plan.get_node(1).alias is None
        assert basic_plan.get_node(0).query_block is None

    def test_aggregates(self, basic_plan: ParsedPlan) -> None:
        assert basic_plan.total_cost == 84
        assert basic_plan.max_rows == 27
        assert basic_plan.max_actual_rows is None
        assert basic_plan.max_starts is None


class TestParseTempSpcPlan:
    """Wider plan with TempSpc, K-suffixed bytes and a Time column."""

    def test_shape(self, tempspc_plan: ParsedPlan) -> None:
        assert tempspc_plan.plan_hash_value == "3456789012"
        assert len(tempspc_plan) == 17
        assert tempspc_plan.get_node(2).child_ids == (3, 10)
        assert tempspc_plan.get_node(5).child_ids == (6, 7)
        assert tempspc_plan.get_node(14).child_ids == (15, 16)
        assert_tree_invariants(tempspc_plan)

    def test_magnitudes(self, tempspc_plan: ParsedPlan) -> None:
        assert tempspc_plan.get_node(1).temp_space == 112_000
        assert tempspc_plan.get_node(0).temp_space is None
        assert tempspc_plan.get_node(5).bytes == 1_904_000
        assert tempspc_plan.get_node(9).rows == 500_000

    def test_cost_and_time(self, tempspc_plan: ParsedPlan) -> None:
        root = tempspc_plan.get_node(0)
        assert root.cost == 15234
        assert root.cpu_percent == 2
        assert root.time == "00:03:03"

    def test_view_alias(self, tempspc_plan: ParsedPlan) -> None:
        view = tempspc_plan.get_node(3)
        assert view.object_name == "VW_NSO_1"
        assert view.query_block == "SEL$2"
        assert view.alias == "VW_NSO_1"

    def test_predicates(self, tempspc_plan: ParsedPlan) -> None:
        assert tempspc_plan.get_node(16).filter_predicates == '"O"."ORDER_STATUS"=\'COMPLETED\''
        assert tempspc_plan.get_node(9).filter_predicates == '"OI"."QUANTITY">0'
        with_predicates = [n.id for n in tempspc_plan.nodes if n.has_predicates]
        assert with_predicates == [2, 5, 7, 9, 12, 14, 16]


class TestParseAllStatsPlan:
    """DISPLAY_CURSOR output carrying runtime statistics."""

    def test_cursor_metadata(self, allstats_plan: ParsedPlan) -> None:
        assert allstats_plan.sql_id == "9babjv8yq8ru3"
        assert allstats_plan.plan_hash_value == "1473400139"
        assert allstats_plan.sql_text is not None
        assert "gather_plan_statistics" in allstats_plan.sql_text

    def test_runtime_columns(self, allstats_plan: ParsedPlan) -> None:
        assert allstats_plan.has_actual_stats is True

        join = allstats_plan.get_node(1)
        assert join.starts == 1
        assert join.rows == 37
        assert join.actual_rows == 37
        assert join.actual_time == pytest.approx(10.0)
        assert join.logical_reads == 14
        assert join.physical_reads == 2
        assert join.memory_used == 1_198_000

        root = allstats_plan.get_node(0)
        assert root.rows is None
        assert root.memory_used is None

    def test_predicates(self, allstats_plan: ParsedPlan) -> None:
        assert allstats_plan.get_node(1).access_predicates == (
            '"E"."DEPARTMENT_ID"="D"."DEPARTMENT_ID"'
        )
        assert allstats_plan.get_node(2).filter_predicates == '"D"."LOCATION_ID"=1700'

    def test_aggregates(self, allstats_plan: ParsedPlan) -> None:
        assert allstats_plan.max_actual_rows == 107
        assert allstats_plan.max_starts == 1


# =============================================================================
# Edge Cases
# =============================================================================

REPEATED_HEADER_PLAN = """\
---------------------------------------
| Id  | Operation          | Name    |
---------------------------------------
|   0 | SELECT STATEMENT   |         |
|   1 |  TABLE ACCESS FULL | EMP     |
---------------------------------------
| Id  | Operation          | Name    |
---------------------------------------
|   2 |   INDEX FULL SCAN  | EMP_PK  |
---------------------------------------

Note
-----
   - this is an adaptive plan
"""


class TestEdgeCases:
    """Unusual but valid structures and bad input."""

    def test_empty_input(self) -> None:
        plan = parse_xplan_text("")
        assert plan.root_node is None
        assert len(plan) == 0
        assert plan.total_cost == 0
        assert plan.max_rows == 0

    def test_prose_input(self) -> None:
        plan = parse_xplan_text("no rows selected\n\nSQL> exit\n")
        assert plan.root_node is None

    def test_header_without_rows(self) -> None:
        text = "| Id  | Operation | Name |\n---------------------------\n"
        assert parse_xplan_text(text).root_node is None

    def test_header_without_operation_column(self) -> None:
        text = "| Id  | Operation\n|   0 | SELECT STATEMENT\n"
        assert parse_xplan_text(text).root_node is None

    def test_repeated_header_block(self) -> None:
        plan = parse_xplan_text(REPEATED_HEADER_PLAN)

        assert [node.id for node in plan.nodes] == [0, 1, 2]
        assert plan.get_node(2).object_name == "EMP_PK"
        assert plan.get_node(2).parent_id == 1

    def test_optional_columns_absent(self) -> None:
        plan = parse_xplan_text(REPEATED_HEADER_PLAN)
        node = plan.get_node(1)
        assert node.rows is None
        assert node.cost is None
        assert node.time is None

    def test_unreadable_cells_do_not_abort_row(self) -> None:
        text = (
            "| Id  | Operation         | Name | Rows  | Cost (%CPU)|\n"
            "-----------------------------------------------------\n"
            "|   0 | SELECT STATEMENT  |      |  ???  |    oops    |\n"
            "-----------------------------------------------------\n"
        )
        plan = parse_xplan_text(text)

        root = plan.root_node
        assert root is not None
        assert root.rows is None
        assert root.cost is None

    def test_out_of_range_count_left_absent(self) -> None:
        huge = "9" * 400 + "K"
        text = (
            "| Id  | Operation         | Name | Rows  | Cost (%CPU)|\n"
            "-----------------------------------------------------\n"
            f"|   0 | SELECT STATEMENT  |      | {huge} |    25   (4)|\n"
            "-----------------------------------------------------\n"
        )
        plan = parse_xplan_text(text)

        root = plan.root_node
        assert root is not None
        assert root.rows is None
        assert root.cost == 25

    def test_missing_predicate_section(self, caplog: pytest.LogCaptureFixture) -> None:
        text = load_fixture("xplan_basic.txt")
        text = text[: text.index("Predicate Information")]

        with caplog.at_level(logging.WARNING):
            plan = parse_xplan_text(text)

        assert len(plan) == 8
        assert plan.get_node(4).access_predicates is None
        assert "4, 6" in caplog.text

    def test_max_nodes_keeps_prefix(self) -> None:
        plan = parse_xplan_text(
            load_fixture("xplan_tempspc.txt"),
            ParserConfig(max_nodes=5),
        )
        assert [node.id for node in plan.nodes] == [0, 1, 2, 3, 4]
        assert_tree_invariants(plan)


class TestParseCostCell:
    """Cost (%CPU) cells."""

    def test_cost_with_cpu(self) -> None:
        assert parse_cost_cell("25   (4)") == (25, 4)

    def test_cost_only(self) -> None:
        assert parse_cost_cell("7") == (7, None)

    def test_empty(self) -> None:
        assert parse_cost_cell("") == (None, None)
