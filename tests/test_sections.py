"""
Tests for the auxiliary report sections: plan hash, cursor header,
predicates, query blocks and the SQL Monitor text blocks.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from plansense.parser.sections import (
    PredicateScanner,
    PredicateState,
    closes_expression,
    find_cursor_header,
    find_plan_hash_value,
    is_separator,
    scan_global_information,
    scan_global_stats,
    scan_predicates,
    scan_query_blocks,
    scan_sql_text,
    split_cells,
)


# =============================================================================
# Fixtures
# =============================================================================

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_lines(name: str) -> list[str]:
    """Load a report fixture as a list of lines."""
    return (FIXTURES_DIR / name).read_text(encoding="utf-8").splitlines()


PREDICATE_HEADER = [
    "Predicate Information (identified by operation id):",
    "---------------------------------------------------",
]


def scan(*lines: str) -> dict[int, dict[str, str]]:
    """Run scan_predicates over a section built from ``lines``."""
    return scan_predicates(PREDICATE_HEADER + list(lines))


# =============================================================================
# Small helpers
# =============================================================================

class TestSeparators:
    """Rule lines between table blocks."""

    @pytest.mark.parametrize("line", ["-----", "|=====|", "  ======  ", "--+--"])
    def test_rules(self, line: str) -> None:
        assert is_separator(line)

    @pytest.mark.parametrize("line", ["", "||", "| a |", "Note", "- item"])
    def test_not_rules(self, line: str) -> None:
        assert not is_separator(line)

    def test_split_cells(self) -> None:
        assert split_cells("| a | b |  |") == ["a", "b", ""]


class TestPlanHashAndCursor:
    """Plan hash value line and DISPLAY_CURSOR header."""

    def test_plan_hash_value(self) -> None:
        assert find_plan_hash_value(load_lines("xplan_basic.txt")) == "1234567890"

    def test_plan_hash_in_monitoring_heading(self) -> None:
        lines = ["SQL Plan Monitoring Details (Plan Hash Value=3011426553)"]
        assert find_plan_hash_value(lines) == "3011426553"

    def test_no_plan_hash(self) -> None:
        assert find_plan_hash_value(["nothing here"]) is None

    def test_cursor_header(self) -> None:
        header = find_cursor_header(load_lines("xplan_allstats.txt"))

        assert header is not None
        assert header.sql_id == "9babjv8yq8ru3"
        assert header.child_number == 0
        assert header.sql_text is not None
        assert header.sql_text.startswith("SELECT /*+ gather_plan_statistics */")
        assert header.sql_text.endswith("WHERE d.location_id = 1700")
        assert "Plan hash value" not in header.sql_text

    def test_no_cursor_header(self) -> None:
        assert find_cursor_header(load_lines("xplan_basic.txt")) is None


# =============================================================================
# Predicate Information
# =============================================================================

class TestPredicateScanner:
    """State machine over the Predicate Information section."""

    def test_single_line_entries(self) -> None:
        predicates = scan(
            '   4 - access("E"."DEPARTMENT_ID"=:dept_id)',
            '   6 - filter("J"."MIN_SALARY">1000)',
        )

        assert predicates == {
            4: {"access": '"E"."DEPARTMENT_ID"=:dept_id'},
            6: {"filter": '"J"."MIN_SALARY">1000'},
        }

    def test_multi_line_expression_is_joined(self) -> None:
        predicates = scan(
            '   3 - filter("A"."X">1 AND',
            '              "A"."Y"<2)',
        )

        assert predicates[3]["filter"] == '"A"."X">1 AND "A"."Y"<2'

    def test_follow_on_line_without_id(self) -> None:
        """Oracle lists a second predicate for the same id without the id."""
        predicates = scan(
            '   1 - access("E"."DEPARTMENT_ID"="D"."DEPARTMENT_ID")',
            '       filter("E"."SALARY">1000)',
        )

        assert predicates[1] == {
            "access": '"E"."DEPARTMENT_ID"="D"."DEPARTMENT_ID"',
            "filter": '"E"."SALARY">1000',
        }

    def test_literal_paren_ends_expression_early(self) -> None:
        """
        A line ending in ')' inside a string literal closes the expression.

        The rest of the literal on the next line is not recovered.
        """
        predicates = scan(
            "   2 - filter(\"T\".\"NOTE\" LIKE '%(see above)",
            "              %' AND \"T\".\"ID\">0)",
        )

        assert predicates == {2: {"filter": "\"T\".\"NOTE\" LIKE '%(see above"}}

    def test_unterminated_expression_flushed_at_end(self) -> None:
        predicates = scan(
            '   5 - access("A"."ID"="B"."ID"',
            '              AND "A"."X"=1',
        )

        assert predicates[5]["access"] == '"A"."ID"="B"."ID" AND "A"."X"=1'

    def test_unterminated_expression_flushed_at_heading(self) -> None:
        predicates = scan(
            '   5 - access("A"."ID"="B"."ID"',
            "",
            "Note",
            "-----",
            "   - dynamic statistics used: dynamic sampling (level=2)",
        )

        assert predicates == {5: {"access": '"A"."ID"="B"."ID"'}}

    def test_section_ends_at_next_heading(self) -> None:
        predicates = scan(
            '   1 - filter(ROWNUM<=10)',
            "",
            "Column Projection Information (identified by operation id):",
            '   2 - filter("NOT_A_PREDICATE")',
        )

        assert predicates == {1: {"filter": "ROWNUM<=10"}}

    def test_state_transitions(self) -> None:
        scanner = PredicateScanner()
        assert scanner.state is PredicateState.IDLE

        scanner.feed('   3 - access("A"."ID"=')
        assert scanner.state is PredicateState.ACCUMULATING_ACCESS

        scanner.feed('              "B"."ID")')
        assert scanner.state is PredicateState.IDLE

        scanner.feed('   4 - filter("C"."X" IN (1,')
        assert scanner.state is PredicateState.ACCUMULATING_FILTER

        # A new entry flushes the pending one
        scanner.feed('   5 - filter("D"."Y"=2)')
        assert scanner.state is PredicateState.IDLE

        predicates = scanner.finish()
        assert predicates[3]["access"] == '"A"."ID"= "B"."ID"'
        assert predicates[4]["filter"] == '"C"."X" IN (1,'
        assert predicates[5]["filter"] == '"D"."Y"=2'

    def test_feed_after_finish(self) -> None:
        scanner = PredicateScanner()
        scanner.finish()
        assert scanner.feed('   1 - filter(1=1)') is False

    def test_no_section(self) -> None:
        assert scan_predicates(["| Id | Operation |"]) == {}

    def test_closes_expression(self) -> None:
        assert closes_expression('"A"=1)')
        assert closes_expression('"A"=1)   ')
        assert not closes_expression('"A"=1 AND')

    def test_parallel_report_closing_paren_case(self) -> None:
        predicates = scan_predicates(load_lines("monitor_parallel.txt"))

        assert predicates[21] == {
            "filter": "\"O\".\"ORDER_DATE\">=TO_DATE('2023-01-01','YYYY-MM-DD'",
        }
        assert predicates[4]["filter"] == 'SUM("OI"."QUANTITY"*"OI"."UNIT_PRICE")>10000'
        assert sorted(predicates) == [4, 9, 13, 14, 19, 21]


# =============================================================================
# Query blocks
# =============================================================================

class TestQueryBlocks:
    """Query Block Name / Object Alias section."""

    def test_entries(self) -> None:
        blocks = scan_query_blocks(load_lines("xplan_basic.txt"))

        assert sorted(blocks) == [1, 2, 3, 4, 5, 6, 7]
        assert blocks[1].query_block == "SEL$1"
        assert blocks[1].object_alias is None
        assert blocks[3].query_block == "SEL$1"
        assert blocks[3].object_alias == "E@SEL$1"

    def test_stops_before_predicates(self) -> None:
        blocks = scan_query_blocks(load_lines("xplan_basic.txt"))
        assert all(block.query_block.startswith("SEL$") for block in blocks.values())

    def test_absent(self) -> None:
        assert scan_query_blocks(load_lines("monitor_basic.txt")) == {}


# =============================================================================
# SQL Monitor text blocks
# =============================================================================

class TestMonitorBlocks:
    """SQL Text, Global Information and Global Stats."""

    def test_sql_text(self) -> None:
        sql_text = scan_sql_text(load_lines("monitor_parallel.txt"))

        assert sql_text is not None
        assert sql_text.startswith("SELECT /*+ PARALLEL(4) */")
        assert sql_text.endswith("ORDER BY total_value DESC")
        assert "Global Information" not in sql_text

    def test_global_information(self) -> None:
        info = scan_global_information(load_lines("monitor_parallel.txt"))

        assert info["status"] == "DONE (ALL ROWS)"
        assert info["sql id"] == "g8h2k4m6n9p1q3"
        assert info["plan hash"] == "2847561039"
        assert info["execution started"] == "01/20/2024 14:22:10"
        assert info["duration"] == "218s"
        assert info["degree of parallel"] == "4"

    def test_global_stats_merges_wrapped_labels(self) -> None:
        stats = scan_global_stats(load_lines("monitor_parallel.txt"))

        assert stats == {
            "elapsed time": "218s",
            "cpu time": "142s",
            "io waits": "68s",
            "other waits": "8s",
            "buffer gets": "2850000",
            "read reqs": "45000",
        }

    def test_missing_blocks(self) -> None:
        lines = load_lines("xplan_basic.txt")
        assert scan_sql_text(lines) is None
        assert scan_global_information(lines) == {}
        assert scan_global_stats(lines) == {}
