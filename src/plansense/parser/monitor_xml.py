"""
Parser for SQL Monitor XML reports (DBMS_SQLTUNE.REPORT_SQL_MONITOR, TYPE=>'XML').

Two schema generations are seen in the wild:

Legacy / simplified
    A flat list of <operation> elements under <plan_operations>, each
    carrying everything as attributes (id, parent_id, name, depth, cost,
    cardinality, output_rows, elapsed_time, starts, buffer_gets,
    physical_reads, object_name, access_predicates). Report metadata sits
    in <sql_monitor> child elements.

Full (as produced by Oracle 11g and later)
    <report>
      <report_parameters><sql_id>...</sql_id></report_parameters>
      <target sql_id="..." sql_plan_hash="..."><sql_fulltext>...</sql_fulltext></target>
      <stats type="monitor"><stat name="elapsed_time">1755</stat></stats>
      <plan_monitor>
        <operation id="3" parent_id="2" name="TABLE ACCESS" options="FULL" depth="3">
          <object type="TABLE"><owner>HR</owner><name>DEPARTMENTS</name></object>
          <optimizer><cardinality>1</cardinality><bytes>..</bytes><cost>3</cost></optimizer>
          <stats type="plan_monitor"><stat name="starts">1</stat>...</stats>
        </operation>
      </plan_monitor>
      <plan><operation id="3" ...><predicates type="filter">...</predicates><qblock>..</qblock></operation></plan>
    </report>

Predicates and query blocks live on the <plan> rows, runtime statistics
on the <plan_monitor> rows; the two are joined by operation id.

Times reported in microseconds (global and per-operation elapsed_time)
are converted to milliseconds. Tree edges come from the explicit
id/parent_id attributes.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any

from plansense.parser.config import DEFAULT_CONFIG, ParserConfig
from plansense.parser.models import ParsedPlan, PlanSource
from plansense.parser.numeric import parse_int
from plansense.parser.tree import PlanRow, build_tree

logger = logging.getLogger(__name__)

_XML_SIGNATURE = re.compile(r"<\?xml|<report\b", re.IGNORECASE)
_MONITOR_TAGS = re.compile(
    r"<(sql_monitor_report|sql_monitor|plan_monitor|report_parameters|plan_operations|operation)\b",
    re.IGNORECASE,
)
_ROOT_ELEMENT = re.compile(r"<([A-Za-z_][\w.-]*)[\s>/]")


class SchemaGeneration(str, Enum):
    """SQL Monitor XML layout."""

    LEGACY = "legacy"
    FULL = "full"


def can_parse(text: str) -> bool:
    """XML declaration or <report>, plus a monitoring element."""
    return bool(_XML_SIGNATURE.search(text) and _MONITOR_TAGS.search(text))


def detect_generation(root: ET.Element) -> SchemaGeneration:
    """FULL when a <plan_monitor> section with nested sub-structures exists."""
    if _first(root, "plan_monitor") is not None:
        return SchemaGeneration.FULL
    return SchemaGeneration.LEGACY


def parse_monitor_xml(text: str, config: ParserConfig | None = None) -> ParsedPlan:
    """
    Parse SQL Monitor XML into a ParsedPlan.

    Malformed XML yields an empty plan (logged as a warning).
    """
    config = config or DEFAULT_CONFIG

    root = load_document(text)
    if root is None:
        return ParsedPlan.empty(PlanSource.SQL_MONITOR_XML)

    generation = detect_generation(root)
    logger.debug("SQL Monitor XML schema generation: %s", generation.value)

    if generation is SchemaGeneration.FULL:
        metadata = _full_metadata(root)
        rows = _full_rows(root)
    else:
        metadata = _legacy_metadata(root)
        rows = _legacy_rows(root)

    if not rows:
        return ParsedPlan.empty(PlanSource.SQL_MONITOR_XML, **metadata)

    _fill_missing_depths(rows)
    tree = build_tree(rows, use_explicit_parents=True, max_nodes=config.max_nodes)

    return ParsedPlan(
        source=PlanSource.SQL_MONITOR_XML,
        nodes=tree.nodes,
        root_id=tree.root_id,
        has_actual_stats=any(node.has_actual_stats for node in tree.nodes),
        **metadata,
    )


def load_document(text: str) -> ET.Element | None:
    """
    Parse the XML document, tolerating text around it.

    SQL*Plus spools often carry prompts before the declaration and
    trailing output after the closing tag.
    """
    declaration = text.find("<?xml")
    root_match = _ROOT_ELEMENT.search(text, max(declaration, 0))
    if root_match is None:
        return None

    start = declaration if declaration != -1 else root_match.start()
    closing = f"</{root_match.group(1)}>"
    close_at = text.rfind(closing)
    if close_at > root_match.start():
        end = close_at + len(closing)
    else:
        end = text.rfind(">") + 1

    try:
        return ET.fromstring(text[start:end])
    except ET.ParseError as e:
        logger.warning("Could not parse SQL Monitor XML: %s", e)
        return None


# =============================================================================
# Full generation
# =============================================================================


def _full_metadata(root: ET.Element) -> dict[str, Any]:
    params = _first(root, "report_parameters")
    target = _first(root, "target")

    sql_id = _child_text(params, "sql_id")
    plan_hash = None
    sql_text = None
    status = None
    if target is not None:
        sql_id = sql_id or target.get("sql_id") or _child_text(target, "sql_id")
        plan_hash = target.get("sql_plan_hash") or _child_text(target, "sql_plan_hash")
        sql_text = _child_text(target, "sql_fulltext") or _child_text(target, "sql_text")
        status = _child_text(target, "status") or target.get("status")
    plan_hash = plan_hash or _child_text(params, "plan_hash")

    elapsed_us = parse_int(_monitor_stat(root, "elapsed_time"))

    return {
        "sql_id": sql_id,
        "plan_hash_value": plan_hash,
        "sql_text": sql_text,
        "status": status,
        "total_elapsed_time": elapsed_us / 1000 if elapsed_us is not None else None,
    }


def _full_rows(root: ET.Element) -> list[PlanRow]:
    monitor = _first(root, "plan_monitor")
    if monitor is None:
        return []

    plan_rows = _plan_rows_by_id(root)
    operations = monitor.findall("operation")

    samples = {id(op): _activity_samples(op) for op in operations}
    total_samples = sum(samples.values())

    rows: list[PlanRow] = []
    for op in operations:
        node_id = parse_int(op.get("id"))
        operation = _operation_text(op)
        if node_id is None or not operation:
            continue

        plan_row = plan_rows.get(node_id)
        optimizer = op.find("optimizer")
        stats = _stat_values(op.find("stats"))

        fields: dict[str, Any] = {
            "object_name": _object_name(op) or _object_name(plan_row),
            "cost": _estimate(optimizer, plan_row, "cost", "cost"),
            "rows": _estimate(optimizer, plan_row, "cardinality", "card"),
            "bytes": _estimate(optimizer, plan_row, "bytes", "bytes"),
            "temp_space": _estimate(optimizer, plan_row, "temp_space", "temp_space"),
            "actual_rows": parse_int(stats.get("cardinality")),
            "starts": parse_int(stats.get("starts")),
            "memory_used": parse_int(stats.get("max_memory")),
            "temp_used": parse_int(stats.get("max_temp")),
            "physical_reads": parse_int(stats.get("read_reqs") or stats.get("physical_reads")),
            "logical_reads": parse_int(stats.get("buffer_gets")),
            "actual_time": _stat_time_ms(stats),
        }

        if total_samples:
            fields["activity_percent"] = round(samples[id(op)] * 100.0 / total_samples, 1)

        if plan_row is not None:
            fields["access_predicates"] = _child_text(plan_row, "predicates[@type='access']")
            fields["filter_predicates"] = _child_text(plan_row, "predicates[@type='filter']")
            fields["query_block"] = _child_text(plan_row, "qblock")
            fields["object_alias"] = _child_text(plan_row, "object_alias")
            fields["time"] = _child_text(plan_row, "time")

        rows.append(PlanRow(
            id=node_id,
            depth=_depth(op),
            operation=operation,
            parent_id=parse_int(op.get("parent_id")),
            fields=fields,
        ))

    return rows


def _plan_rows_by_id(root: ET.Element) -> dict[int, ET.Element]:
    """Operations of the <plan> section (predicates, query blocks)."""
    rows: dict[int, ET.Element] = {}
    for plan in root.iter("plan"):
        for op in plan.findall("operation"):
            node_id = parse_int(op.get("id"))
            if node_id is not None:
                rows.setdefault(node_id, op)
    return rows


def _monitor_stat(root: ET.Element, name: str) -> str | None:
    """A statement-level <stats type="monitor"> value."""
    for stats in root.iter("stats"):
        if stats.get("type") == "monitor":
            value = _stat_values(stats).get(name)
            if value is not None:
                return value
    return None


def _stat_values(stats: ET.Element | None) -> dict[str, str]:
    if stats is None:
        return {}
    return {
        stat.get("name", ""): (stat.text or "").strip()
        for stat in stats.findall("stat")
    }


def _stat_time_ms(stats: dict[str, str]) -> float | None:
    elapsed_us = parse_int(stats.get("elapsed_time"))
    if elapsed_us is not None:
        return elapsed_us / 1000
    duration_s = parse_int(stats.get("duration"))
    if duration_s is not None:
        return duration_s * 1000.0
    return None


def _activity_samples(op: ET.Element) -> int:
    total = 0
    for activity in op.iter("activity"):
        total += parse_int(activity.text) or 0
    return total


# =============================================================================
# Legacy generation
# =============================================================================


def _legacy_metadata(root: ET.Element) -> dict[str, Any]:
    monitor = _first(root, "sql_monitor")
    source = monitor if monitor is not None else root

    elapsed_us = parse_int(_child_text(source, "elapsed_time"))
    return {
        "sql_id": _child_text(source, "sql_id"),
        "sql_text": _child_text(source, "sql_text"),
        "plan_hash_value": _child_text(source, "plan_hash"),
        "status": _child_text(source, "status"),
        "total_elapsed_time": elapsed_us / 1000 if elapsed_us is not None else None,
    }


def _legacy_rows(root: ET.Element) -> list[PlanRow]:
    container = _first(root, "plan_operations")
    if container is not None:
        operations = container.findall("operation")
    else:
        operations = list(root.iter("operation"))

    rows: list[PlanRow] = []
    for op in operations:
        node_id = parse_int(op.get("id"))
        operation = _operation_text(op)
        if node_id is None or not operation:
            continue

        elapsed_us = parse_int(_value(op, "elapsed_time"))
        fields: dict[str, Any] = {
            "object_name": _value(op, "object_name") or _object_name(op),
            "cost": parse_int(_value(op, "cost")),
            "rows": parse_int(_value(op, "cardinality", "card")),
            "bytes": parse_int(_value(op, "bytes")),
            "actual_rows": parse_int(_value(op, "output_rows")),
            "actual_time": elapsed_us / 1000 if elapsed_us is not None else None,
            "starts": parse_int(_value(op, "starts")),
            "logical_reads": parse_int(_value(op, "buffer_gets")),
            "physical_reads": parse_int(_value(op, "physical_reads")),
            "memory_used": parse_int(_value(op, "max_memory", "memory_used")),
            "temp_used": parse_int(_value(op, "max_temp", "temp_used")),
            "access_predicates": _value(op, "access_predicates"),
            "filter_predicates": _value(op, "filter_predicates"),
            "query_block": _value(op, "query_block", "qblock"),
            "object_alias": _value(op, "object_alias"),
        }

        rows.append(PlanRow(
            id=node_id,
            depth=_depth(op),
            operation=operation,
            parent_id=parse_int(op.get("parent_id")),
            fields=fields,
        ))

    return rows


# =============================================================================
# Helpers
# =============================================================================


def _first(root: ET.Element, tag: str) -> ET.Element | None:
    if root.tag == tag:
        return root
    return root.find(f".//{tag}")


def _child_text(element: ET.Element | None, path: str) -> str | None:
    if element is None:
        return None
    child = element.find(path)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _value(op: ET.Element, *names: str) -> str | None:
    """First non-empty attribute or child element text among ``names``."""
    for name in names:
        value = op.get(name)
        if value is None:
            value = _child_text(op, name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _estimate(
    optimizer: ET.Element | None,
    plan_row: ET.Element | None,
    optimizer_name: str,
    plan_name: str,
) -> int | None:
    """Optimizer estimate from the monitor row, else from the plan row."""
    value = parse_int(_child_text(optimizer, optimizer_name))
    if value is None:
        value = parse_int(_child_text(plan_row, plan_name))
    return value


def _operation_text(op: ET.Element) -> str:
    """'TABLE ACCESS' + 'FULL' -> 'TABLE ACCESS FULL'."""
    parts = [op.get("name") or "", op.get("options") or ""]
    return " ".join(part.strip() for part in parts if part.strip())


def _object_name(op: ET.Element | None) -> str | None:
    if op is None:
        return None
    obj = op.find("object")
    if obj is None:
        return None
    return _child_text(obj, "name") or obj.get("name") or (obj.text or "").strip() or None


def _depth(op: ET.Element) -> int:
    """Reported depth, or -1 when absent or unreadable."""
    depth = parse_int(op.get("depth"))
    if depth is None or depth < 0:
        return -1
    return depth


def _fill_missing_depths(rows: list[PlanRow]) -> None:
    """Derive depth from the parent chain where the report omits it."""
    by_id = {row.id: row for row in rows}

    for row in rows:
        # Walk up to the first ancestor with a known depth, then unwind
        chain: list[PlanRow] = []
        seen: set[int] = set()
        current: PlanRow | None = row
        while current is not None and current.depth < 0 and current.id not in seen:
            chain.append(current)
            seen.add(current.id)
            parent_id = current.parent_id
            current = by_id.get(parent_id) if parent_id is not None else None

        base = current.depth if current is not None and current.depth >= 0 else -1
        for pending in reversed(chain):
            base += 1
            pending.depth = base
