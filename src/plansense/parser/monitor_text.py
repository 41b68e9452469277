"""
Parser for SQL Monitor text reports (DBMS_SQLTUNE.REPORT_SQL_MONITOR, TYPE=>'TEXT').

The plan table uses the same column-position strategy as DBMS_XPLAN,
with a runtime vocabulary (E-Rows, A-Rows, A-Time, Starts, Activity).
Newer reports wrap the header over two lines ("Rows" / "(Actual)");
those are merged before matching.

Plan-level metadata comes from the blocks above the table:
- SQL Text: statement text
- Global Information: Status, SQL ID, Plan Hash, Duration
- Global Stats: Elapsed Time (converted to milliseconds)
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
from plansense.parser.numeric import (
    parse_duration_ms,
    parse_leading_int,
    parse_magnitude,
    parse_percent,
)
from plansense.parser.sections import (
    find_plan_hash_value,
    scan_global_information,
    scan_global_stats,
    scan_predicates,
    scan_query_blocks,
    scan_sql_text,
)
from plansense.parser.tree import PlanRow, build_tree
from plansense.parser.xplan import parse_cost_cell

logger = logging.getLogger(__name__)

REPORT_MARKERS = re.compile(
    r"SQL Monitoring Report|SQL Plan Monitoring Details|^\s*Global Stats\s*$|^\s*Global Information\s*$",
    re.IGNORECASE | re.MULTILINE,
)
# A bare monitoring table pasted without the report headings
_MONITOR_ONLY_HEADER = re.compile(
    r"\|\s*Id\s*\|.*Operation.*\|\s*(Activity|Execs)\b",
    re.IGNORECASE,
)
_DETAILS_HEADING = re.compile(r"SQL Plan Monitoring Details", re.IGNORECASE)

MONITOR_COLUMNS = (
    rule("id", "id"),
    rule("operation", "operation"),
    rule("name", "name", "object name"),
    rule("actual_rows", "a-rows", "rows (actual)"),
    rule("rows", "e-rows", "rows (estim)", "rows"),
    rule("bytes", "bytes", "e-bytes"),
    rule("cost", contains="cost"),
    rule("actual_time", "a-time"),
    rule("time_active", "time active(s)"),
    rule("starts", "starts", "execs"),
    rule("physical_reads", "reads", "read reqs"),
    rule("logical_reads", "buffers", "buffer gets"),
    rule("memory_used", "mem", "mem (max)"),
    rule("temp_used", "temp", "temp (max)"),
    rule("activity_percent", "activity", "activity (%)"),
)

_MAGNITUDE_FIELDS = (
    "rows", "bytes", "actual_rows", "starts",
    "physical_reads", "logical_reads", "memory_used", "temp_used",
)

_PLAN_HASH_KEYS = ("plan hash value", "sql plan hash value", "plan hash")


def can_parse(text: str) -> bool:
    """SQL Monitor report headings, or a plan table with monitoring columns."""
    return bool(REPORT_MARKERS.search(text) or _MONITOR_ONLY_HEADER.search(text))


def parse_monitor_text(text: str, config: ParserConfig | None = None) -> ParsedPlan:
    """
    Parse a SQL Monitor text report into a ParsedPlan.

    has_actual_stats is always True when a root was produced.
    """
    config = config or DEFAULT_CONFIG
    lines = text.splitlines()

    info = scan_global_information(lines)
    stats = scan_global_stats(lines)

    plan_hash_value = next(
        (info[key] for key in _PLAN_HASH_KEYS if info.get(key)),
        None,
    ) or find_plan_hash_value(lines)

    elapsed = parse_duration_ms(stats.get("elapsed time"))
    if elapsed is None:
        elapsed = parse_duration_ms(info.get("duration"))

    metadata: dict[str, Any] = {
        "sql_id": info.get("sql id") or None,
        "sql_text": scan_sql_text(lines),
        "plan_hash_value": plan_hash_value,
        "status": info.get("status") or None,
        "total_elapsed_time": elapsed,
    }

    rows = parse_table_rows(lines)
    if not rows:
        logger.debug("No SQL Monitor plan rows found")
        return ParsedPlan.empty(PlanSource.SQL_MONITOR_TEXT, **metadata)

    tree = build_tree(
        rows,
        scan_predicates(lines),
        scan_query_blocks(lines),
        max_nodes=config.max_nodes,
    )

    return ParsedPlan(
        source=PlanSource.SQL_MONITOR_TEXT,
        nodes=tree.nodes,
        root_id=tree.root_id,
        has_actual_stats=tree.root_id is not None,
        **metadata,
    )


def parse_table_rows(lines: list[str]) -> list[PlanRow]:
    """Read the plan rows of the 'SQL Plan Monitoring Details' table."""
    offset = 0
    for index, line in enumerate(lines):
        if _DETAILS_HEADING.search(line):
            offset = index
            break

    header_index = find_header(lines[offset:])
    if header_index is None:
        return []
    header_index += offset

    layout = build_layout(lines, header_index, MONITOR_COLUMNS)
    if not layout.has("id") or not layout.has("operation"):
        return []

    rows: list[PlanRow] = []
    for line in iter_data_lines(lines, layout):
        row = parse_data_row(line, layout)
        if row is not None:
            rows.append(row)
    return rows


def parse_data_row(line: str, layout: TableLayout) -> PlanRow | None:
    """Extract one monitoring row; None for non-plan lines."""
    layout = layout.for_row(line)
    id_cell = layout.cell(line, "id") or ""
    node_id = parse_leading_int(id_cell)
    if node_id is None or node_id < 0:
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
            fields[name] = parse_magnitude(layout.cell(line, name))

    if layout.has("cost"):
        cost, cpu_percent = parse_cost_cell(layout.cell(line, "cost") or "")
        fields["cost"] = cost
        fields["cpu_percent"] = cpu_percent

    actual_time = parse_duration_ms(layout.cell(line, "actual_time"))
    if actual_time is None and layout.has("time_active"):
        actual_time = parse_duration_ms(layout.cell(line, "time_active"), default_unit="s")
    fields["actual_time"] = actual_time

    if layout.has("activity_percent"):
        fields["activity_percent"] = parse_percent(layout.cell(line, "activity_percent"))

    return PlanRow(
        id=node_id,
        depth=leading_spaces(operation_raw),
        operation=operation,
        fields=fields,
        has_star=id_cell.startswith("*"),
    )
