"""
Operation categories and cardinality helpers.

Categories group Oracle row sources for display (legends, colors,
filter presets). Lookup is by substring, in table order, so
"TABLE ACCESS BY INDEX ROWID BATCHED" lands in "Table Access" and a
"PX SEND HASH" in "Parallelism".
"""

from __future__ import annotations

OTHER_CATEGORY = "Other"

# Ordered: the first category containing a matching operation wins.
OPERATION_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Table Access", (
        "TABLE ACCESS FULL",
        "TABLE ACCESS BY INDEX ROWID",
        "TABLE ACCESS BY INDEX ROWID BATCHED",
        "TABLE ACCESS BY USER ROWID",
        "TABLE ACCESS BY GLOBAL INDEX ROWID",
        "TABLE ACCESS BY LOCAL INDEX ROWID",
    )),
    ("Index Operations", (
        "INDEX UNIQUE SCAN",
        "INDEX RANGE SCAN",
        "INDEX FULL SCAN",
        "INDEX FAST FULL SCAN",
        "INDEX SKIP SCAN",
        "INDEX RANGE SCAN DESCENDING",
    )),
    ("Join Operations", (
        "NESTED LOOPS",
        "HASH JOIN",
        "MERGE JOIN",
        "HASH JOIN OUTER",
        "HASH JOIN ANTI",
        "HASH JOIN SEMI",
        "NESTED LOOPS OUTER",
        "MERGE JOIN OUTER",
    )),
    ("Set Operations", (
        "UNION-ALL",
        "UNION",
        "INTERSECT",
        "MINUS",
        "CONCATENATION",
    )),
    ("Aggregation", (
        "SORT AGGREGATE",
        "HASH GROUP BY",
        "SORT GROUP BY",
        "SORT GROUP BY NOSORT",
    )),
    ("Sort Operations", (
        "SORT ORDER BY",
        "SORT UNIQUE",
        "SORT JOIN",
        "BUFFER SORT",
    )),
    ("Filter/View", (
        "FILTER",
        "VIEW",
        "COUNT STOPKEY",
        "FIRST ROW",
    )),
    ("Partition", (
        "PARTITION RANGE ALL",
        "PARTITION RANGE SINGLE",
        "PARTITION RANGE ITERATOR",
        "PARTITION LIST ALL",
        "PARTITION LIST SINGLE",
    )),
    ("Parallelism", (
        "PX COORDINATOR",
        "PX SEND",
        "PX RECEIVE",
        "PX BLOCK ITERATOR",
        "PX SELECTOR",
        "PX PARTITION",
    )),
    (OTHER_CATEGORY, (
        "SELECT STATEMENT",
        "UPDATE STATEMENT",
        "INSERT STATEMENT",
        "DELETE STATEMENT",
        "LOAD TABLE CONVENTIONAL",
        "SEQUENCE",
    )),
)

CATEGORY_NAMES: tuple[str, ...] = tuple(name for name, _ in OPERATION_CATEGORIES)


def operation_category(operation: str) -> str:
    """Display category of an operation; "Other" when nothing matches."""
    upper = operation.upper()
    for category, operations in OPERATION_CATEGORIES:
        if any(op in upper for op in operations):
            return category
    return OTHER_CATEGORY


def cardinality_ratio(rows: int | None, actual_rows: int | None) -> float | None:
    """
    Actual rows divided by estimated rows.

    None when either value is missing or the estimate is not positive.
    """
    if rows is None or actual_rows is None or rows <= 0:
        return None
    return actual_rows / rows


def cardinality_deviation(rows: int | None, actual_rows: int | None) -> float | None:
    """
    How far the estimate is off, as a factor of at least 1.

    A ratio r gives max(r, 1/r). Zero actual rows against a positive
    estimate is an unbounded miss.
    """
    ratio = cardinality_ratio(rows, actual_rows)
    if ratio is None:
        return None
    if ratio == 0:
        return float("inf")
    return ratio if ratio >= 1 else 1 / ratio
