"""
Tests for operation categories, cardinality helpers and display formatting.
"""

from __future__ import annotations

import math

import pytest

from plansense.formatting import (
    format_bytes,
    format_number_short,
    format_time_detailed,
    format_time_short,
)
from plansense.operations import (
    CATEGORY_NAMES,
    OTHER_CATEGORY,
    cardinality_deviation,
    cardinality_ratio,
    operation_category,
)


# =============================================================================
# Categories
# =============================================================================

class TestOperationCategory:
    """Substring lookup in table order."""

    @pytest.mark.parametrize(
        "operation, category",
        [
            ("TABLE ACCESS FULL", "Table Access"),
            ("TABLE ACCESS BY INDEX ROWID BATCHED", "Table Access"),
            ("INDEX RANGE SCAN DESCENDING", "Index Operations"),
            ("HASH JOIN OUTER", "Join Operations"),
            ("NESTED LOOPS", "Join Operations"),
            ("UNION-ALL", "Set Operations"),
            ("SORT GROUP BY", "Aggregation"),
            ("BUFFER SORT", "Sort Operations"),
            ("VIEW PUSHED PREDICATE", "Filter/View"),
            ("PARTITION RANGE ITERATOR", "Partition"),
            ("PX SEND QC (ORDER)", "Parallelism"),
            ("SELECT STATEMENT", OTHER_CATEGORY),
        ],
    )
    def test_known_operations(self, operation: str, category: str) -> None:
        assert operation_category(operation) == category

    def test_case_insensitive(self) -> None:
        assert operation_category("hash join") == "Join Operations"

    def test_unknown_operation(self) -> None:
        assert operation_category("WINDOW BUFFER") == OTHER_CATEGORY

    def test_category_names(self) -> None:
        assert CATEGORY_NAMES[0] == "Table Access"
        assert CATEGORY_NAMES[-1] == OTHER_CATEGORY


class TestCardinality:
    """Actual / estimated ratios."""

    def test_ratio(self) -> None:
        assert cardinality_ratio(10, 1_000) == 100.0
        assert cardinality_ratio(100, 50) == 0.5

    @pytest.mark.parametrize("rows, actual", [(None, 5), (5, None), (0, 5), (-1, 5)])
    def test_ratio_undefined(self, rows: int | None, actual: int | None) -> None:
        assert cardinality_ratio(rows, actual) is None

    def test_deviation_is_symmetric(self) -> None:
        assert cardinality_deviation(10, 100) == 10.0
        assert cardinality_deviation(100, 10) == 10.0
        assert cardinality_deviation(10, 10) == 1.0

    def test_zero_actual_rows(self) -> None:
        assert math.isinf(cardinality_deviation(100, 0))


# =============================================================================
# Formatting
# =============================================================================

class TestFormatting:
    """Short display strings."""

    def test_number_short(self) -> None:
        assert format_number_short(42) == "42"
        assert format_number_short(1_500) == "1.5K"
        assert format_number_short(2_300_000) == "2.3M"

    def test_missing_and_infinite(self) -> None:
        assert format_number_short(None) is None
        assert format_number_short(None, empty="-") == "-"
        assert format_number_short(math.inf) == "∞"
        assert format_time_short(math.inf, infinity="inf") == "inf"

    def test_bytes(self) -> None:
        assert format_bytes(512) == "512 B"
        assert format_bytes(2_048) == "2.0 KB"
        assert format_bytes(5 * 1024 ** 2) == "5.0 MB"
        assert format_bytes(3 * 1024 ** 3) == "3.0 GB"

    def test_time_short(self) -> None:
        assert format_time_short(850) == "850ms"
        assert format_time_short(2_500) == "2.50s"
        assert format_time_short(90_000) == "1.5m"

    def test_time_detailed(self) -> None:
        assert format_time_detailed(125_000) == "2m 5.0s"
        assert format_time_detailed(2_500) == "2.50s"
        assert format_time_detailed(12.34) == "12.3ms"
        assert format_time_detailed(0.45) == "450us"
