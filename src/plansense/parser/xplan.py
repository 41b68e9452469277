"""
Parser for DBMS_XPLAN plan tables.

Handles the classic EXPLAIN PLAN / DBMS_XPLAN.DISPLAY output:

    Plan hash value: 1234567890

    ------------------------------------------------------------------
    | Id  | Operation          | Name | Rows  | Bytes | Cost (%CPU)|
    ------------------------------------------------------------------
    |   0 | SELECT STATEMENT   |      |    10 |   500 |    25   (4)|
    |*  1 |  TABLE ACCESS FULL | EMP  |    10 |   500 |    25   (4)|
    ------------------------------------------------------------------

plus DISPLAY_CURSOR output, including ALLSTATS columns (Starts, A-Rows,
A-Time, Buffers, Reads) when present.

Depth is the number of spaces before the operation text, one space per
level. The row list then goes through the shared tree builder.

Malformed input never raises: a report with no readable rows gives an
empty ParsedPlan.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from plansense.parser.columns import (
    TableLayout,
    build_layout,
    find_header,
    iter_data_lines,
    leading_spaces,
    rule,
)
from plansense.parser.config import DEFAULT_CONFIG, ParserConfig
from plansense.parser.models import ParsedPlan, PlanSource
from plansense.parser.numeric import parse_duration_ms, parse_magnitude
from plansense.parser.sections import (
    find_cursor_header,
    find_plan_hash_value,
    scan_predicates,
    scan_query_blocks,
)
from plansense.parser.tree import PlanRow, build_tree

logger = logging.getLogger(__name__)

XPLAN_COLUMNS = (
    rule("id", "id"),
    rule("operation", "operation"),
    rule("name", "name", "object name"),
    rule("rows", "rows", "e-rows"),
    rule("bytes", "bytes", "e-bytes"),
    rule("temp_space", "tempspc", "e-temp"),
    rule("cost", contains="cost"),
    rule("time", "time", "e-time"),
    rule("starts", "starts"),
    rule("actual_rows", "a-rows"),
    rule("actual_time", "a-time"),
    rule("logical_reads", "buffers"),
    rule("physical_reads", "reads"),
    rule("memory_used", "used-mem"),
    rule("temp_used", "used-tmp"),
)

_ID_CELL = re.compile(r"^\*?\s*(\d+)")
_COST_CELL = re.compile(r"(\d+)\s*(?:\((\d+)\))?")
# Used-Mem / Used-Tmp cells carry the number of passes: "1198K (0)"
_PASS_COUNT = re.compile(r"\s*\(\d+\)\s*$")

_MAGNITUDE_FIELDS = (
    "rows", "bytes", "temp_space", "starts", "actual_rows",
    "logical_reads", "physical_reads", "memory_used", "temp_used",
)


def can_parse(text: str) -> bool:
    """A row containing both an 'Id' and an 'Operation' column."""
    return find_header(text.splitlines()) is not None


def parse_xplan_text(text: str, config: ParserConfig | None = None) -> ParsedPlan:
    """
    Parse DBMS_XPLAN text into a ParsedPlan.

    Args:
        text: Raw report text.
        config: Parser limits (max_nodes); DEFAULT_CONFIG if None.

    Returns:
        ParsedPlan with source DBMS_XPLAN. root_node is None when no
        plan rows could be read.
    """
    config = config or DEFAULT_CONFIG
    lines = text.splitlines()

    plan_hash_value = find_plan_hash_value(lines)
    cursor = find_cursor_header(lines)
    metadata: dict[str, Any] = {
        "plan_hash_value": plan_hash_value,
        "sql_id": cursor.sql_id if cursor else None,
        "sql_text": cursor.sql_text if cursor else None,
    }

    rows = parse_table_rows(lines)
    if not rows:
        logger.debug("No DBMS_XPLAN plan rows found")
        return ParsedPlan.empty(PlanSource.DBMS_XPLAN, **metadata)

    tree = build_tree(
        rows,
        scan_predicates(lines),
        scan_query_blocks(lines),
        max_nodes=config.max_nodes,
    )

    return ParsedPlan(
        source=PlanSource.DBMS_XPLAN,
        nodes=tree.nodes,
        root_id=tree.root_id,
        has_actual_stats=any(node.has_actual_stats for node in tree.nodes),
        **metadata,
    )


def parse_table_rows(lines: list[str]) -> list[PlanRow]:
    """Read every plan row between the header and the closing rule."""
    header_index = find_header(lines)
    if header_index is None:
        return []

    layout = build_layout(lines, header_index, XPLAN_COLUMNS)
    if not layout.has("id") or not layout.has("operation"):
        logger.debug("Header at line %d lacks Id/Operation columns", header_index + 1)
        return []

    rows: list[PlanRow] = []
    for line in iter_data_lines(lines, layout):
        row = parse_data_row(line, layout)
        if row is not None:
            rows.append(row)
    return rows


def parse_data_row(line: str, layout: TableLayout) -> PlanRow | None:
    """
    Extract one row by column range.

    Returns None for rows without an integer id or with an empty
    operation (continuation and repeated header lines).
    """
    layout = layout.for_row(line)
    id_cell = layout.cell(line, "id") or ""
    id_match = _ID_CELL.match(id_cell)
    if not id_match:
        return None

    operation_raw = layout.raw_cell(line, "operation") or ""
    operation = operation_raw.strip()
    if not operation:
        return None

    fields: dict[str, Any] = {
        "object_name": layout.cell(line, "name") or None,
    }

    for name in _MAGNITUDE_FIELDS:
        if layout.has(name):
            fields[name] = parse_magnitude(_strip_pass_count(layout.cell(line, name)))

    if layout.has("cost"):
        cost, cpu_percent = parse_cost_cell(layout.cell(line, "cost") or "")
        fields["cost"] = cost
        fields["cpu_percent"] = cpu_percent

    if layout.has("time"):
        fields["time"] = layout.cell(line, "time") or None

    if layout.has("actual_time"):
        fields["actual_time"] = parse_duration_ms(layout.cell(line, "actual_time"))

    return PlanRow(
        id=int(id_match.group(1)),
        depth=leading_spaces(operation_raw),
        operation=operation,
        fields=fields,
        has_star=id_cell.startswith("*"),
    )


def parse_cost_cell(cell: str) -> tuple[int | None, int | None]:
    """'25   (4)' -> (25, 4); '7' -> (7, None); '' -> (None, None)."""
    match = _COST_CELL.search(cell)
    if not match:
        return None, None
    cpu = int(match.group(2)) if match.group(2) else None
    return int(match.group(1)), cpu


def _strip_pass_count(cell: str | None) -> str | None:
    if cell is None:
        return None
    return _PASS_COUNT.sub("", cell)
