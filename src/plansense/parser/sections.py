"""
Scanners for the auxiliary sections of line-oriented plan reports.

A DBMS_XPLAN or SQL Monitor text report carries more than the plan
table. This module locates and reads:
- "Plan hash value: N" and the DISPLAY_CURSOR "SQL_ID ..." header
- "Predicate Information" (access/filter expressions per operation id)
- "Query Block Name / Object Alias" (query block and alias per id)
- SQL Monitor "SQL Text", "Global Information" and "Global Stats" blocks

All scanners take the report as a list of lines and return plain
mappings; missing sections give empty results.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

PredicateMap = dict[int, dict[str, str]]

PLAN_HASH_PATTERN = re.compile(r"Plan hash value\s*[:=]\s*(\d+)", re.IGNORECASE)
CURSOR_HEADER_PATTERN = re.compile(
    r"SQL_ID\s*:?\s*([A-Za-z0-9]+)\s*,\s*child number\s+(\d+)",
    re.IGNORECASE,
)

PREDICATE_MARKER = re.compile(r"Predicate Information", re.IGNORECASE)
QUERY_BLOCK_MARKER = re.compile(r"Query Block Name\s*/\s*Object Alias", re.IGNORECASE)

_PREDICATE_ENTRY = re.compile(r"^\s*(\d+)\s*-\s*(access|filter)\s*\((.*)$", re.IGNORECASE)
# Oracle prints a second predicate for the same id without repeating the id
_PREDICATE_FOLLOW_ON = re.compile(r"^\s*(access|filter)\s*\((.*)$", re.IGNORECASE)
_QUERY_BLOCK_ENTRY = re.compile(r"^\s*(\d+)\s*-\s*(\S+)(?:\s*/\s*(\S+))?")

_DASHES = re.compile(r"^[-=]+$")
_COLON_HEADING = re.compile(r"^[A-Za-z][^:]*:$")
_KNOWN_HEADINGS = re.compile(
    r"^(Note|Hint Report|Column Projection Information|Outline Data|"
    r"Remote SQL Information|Query Block Registry|Sql Plan Directive|"
    r"SQL Plan Monitoring Details|Global Stats|Global Information|"
    r"Predicate Information|Query Block Name)\b",
    re.IGNORECASE,
)
_KEY_VALUE = re.compile(r"^\s*([^:]+?)\s*:\s*(.*?)\s*$")


def is_separator(line: str) -> bool:
    """True for table rules such as '-----' or '|====|'."""
    stripped = line.strip()
    return bool(stripped) and bool(re.fullmatch(r"[-=|+]+", stripped)) and not set(stripped) <= {"|"}


def _is_section_heading(stripped: str) -> bool:
    if _PREDICATE_ENTRY.match(stripped) or _QUERY_BLOCK_ENTRY.match(stripped):
        return False
    return bool(_COLON_HEADING.match(stripped) or _KNOWN_HEADINGS.match(stripped))


# =============================================================================
# Plan hash / cursor header
# =============================================================================


def find_plan_hash_value(lines: list[str]) -> str | None:
    """Return N from the first "Plan hash value: N" (or "=N") line."""
    for line in lines:
        match = PLAN_HASH_PATTERN.search(line)
        if match:
            return match.group(1)
    return None


@dataclass(frozen=True)
class CursorHeader:
    """DISPLAY_CURSOR header: 'SQL_ID <id>, child number <n>' and statement text."""

    sql_id: str
    child_number: int
    sql_text: str | None


def find_cursor_header(lines: list[str]) -> CursorHeader | None:
    """
    Read the DBMS_XPLAN.DISPLAY_CURSOR header, if present.

    The statement text sits between the dashed rule under the SQL_ID
    line and the 'Plan hash value' line.
    """
    for index, line in enumerate(lines):
        match = CURSOR_HEADER_PATTERN.search(line)
        if not match:
            continue

        text_lines: list[str] = []
        for follow in lines[index + 1:]:
            if PLAN_HASH_PATTERN.search(follow) or is_separator(follow) and text_lines:
                break
            if _DASHES.match(follow.strip()):
                continue
            text_lines.append(follow.rstrip())

        sql_text = "\n".join(text_lines).strip() or None
        return CursorHeader(
            sql_id=match.group(1),
            child_number=int(match.group(2)),
            sql_text=sql_text,
        )
    return None


# =============================================================================
# Predicate Information
# =============================================================================


class PredicateState(str, Enum):
    """States of the predicate section scanner."""

    IDLE = "idle"
    ACCUMULATING_ACCESS = "accumulating_access"
    ACCUMULATING_FILTER = "accumulating_filter"


def closes_expression(text: str) -> bool:
    """
    Closing-paren heuristic: an expression is complete when its text ends with ')'.

    Parentheses are not balanced and string literals are not tokenized,
    so a literal such as ')' at the end of a line ends the expression
    early. Callers see the truncated text and the rest is ignored.
    """
    return text.rstrip().endswith(")")


class PredicateScanner:
    """
    Line-fed state machine for the "Predicate Information" section.

    Transitions:
        IDLE -- "<id> - access(" / "<id> - filter(" --> ACCUMULATING_*
        ACCUMULATING_* -- line where closes_expression() --> flush, IDLE
        ACCUMULATING_* -- new entry line --> flush, ACCUMULATING_*
        any -- end of section / end of input --> flush, done

    A flush stores the accumulated text with one trailing ')' removed,
    keyed by (id, kind). An unterminated expression is flushed with the
    text collected so far.

    Usage:
        scanner = PredicateScanner()
        for line in section_lines:
            if not scanner.feed(line):
                break
        predicates = scanner.finish()
    """

    def __init__(self) -> None:
        self.state = PredicateState.IDLE
        self._current_id: int | None = None
        self._last_id: int | None = None
        self._parts: list[str] = []
        self._predicates: PredicateMap = {}
        self._done = False

    @property
    def predicates(self) -> PredicateMap:
        return self._predicates

    def feed(self, line: str) -> bool:
        """Consume one line. Returns False once the section has ended."""
        if self._done:
            return False

        stripped = line.strip()
        if not stripped or _DASHES.match(stripped):
            return True

        entry = _PREDICATE_ENTRY.match(line)
        if entry:
            self._flush()
            self._start(int(entry.group(1)), entry.group(2), entry.group(3))
            return True

        if self.state is PredicateState.IDLE and self._last_id is not None:
            follow_on = _PREDICATE_FOLLOW_ON.match(line)
            if follow_on:
                self._start(self._last_id, follow_on.group(1), follow_on.group(2))
                return True

        if _is_section_heading(stripped):
            self._flush()
            self._done = True
            return False

        if self.state is not PredicateState.IDLE:
            self._parts.append(stripped)
            if closes_expression(stripped):
                self._flush()
        return True

    def finish(self) -> PredicateMap:
        """Flush anything pending and return id -> {"access"|"filter": text}."""
        self._flush()
        self._done = True
        return self._predicates

    def _start(self, node_id: int, kind: str, rest: str) -> None:
        self._current_id = node_id
        self._last_id = node_id
        self.state = (
            PredicateState.ACCUMULATING_ACCESS
            if kind.lower() == "access"
            else PredicateState.ACCUMULATING_FILTER
        )
        rest = rest.strip()
        self._parts = [rest] if rest else []
        if rest and closes_expression(rest):
            self._flush()

    def _flush(self) -> None:
        if self.state is PredicateState.IDLE or self._current_id is None:
            return

        text = " ".join(self._parts).strip()
        if text.endswith(")"):
            text = text[:-1].rstrip()

        if text:
            kind = "access" if self.state is PredicateState.ACCUMULATING_ACCESS else "filter"
            self._predicates.setdefault(self._current_id, {})[kind] = text

        self.state = PredicateState.IDLE
        self._current_id = None
        self._parts = []


def scan_predicates(lines: list[str]) -> PredicateMap:
    """Read the Predicate Information section (empty map if absent)."""
    start = _find_marker(lines, PREDICATE_MARKER)
    if start is None:
        return {}

    scanner = PredicateScanner()
    for line in lines[start + 1:]:
        if not scanner.feed(line):
            break
    return scanner.finish()


# =============================================================================
# Query Block Name / Object Alias
# =============================================================================


@dataclass(frozen=True)
class QueryBlock:
    """Query block name and optional object alias for one operation."""

    query_block: str
    object_alias: str | None = None


def scan_query_blocks(lines: list[str]) -> dict[int, QueryBlock]:
    """
    Read the "Query Block Name / Object Alias" section.

    Entries look like "   3 - SEL$1 / E@SEL$1" or "   1 - SEL$1".
    """
    start = _find_marker(lines, QUERY_BLOCK_MARKER)
    if start is None:
        return {}

    blocks: dict[int, QueryBlock] = {}
    for line in lines[start + 1:]:
        stripped = line.strip()
        if not stripped:
            if blocks:
                break
            continue
        if _DASHES.match(stripped):
            continue
        if _is_section_heading(stripped):
            break

        match = _QUERY_BLOCK_ENTRY.match(line)
        if match:
            blocks[int(match.group(1))] = QueryBlock(
                query_block=match.group(2),
                object_alias=match.group(3),
            )
    return blocks


# =============================================================================
# SQL Monitor text blocks
# =============================================================================


def scan_sql_text(lines: list[str]) -> str | None:
    """Read the statement under a 'SQL Text' heading."""
    start = _find_heading(lines, "sql text")
    if start is None:
        return None

    text_lines: list[str] = []
    for line in lines[start + 1:]:
        stripped = line.strip()
        if _DASHES.match(stripped) and not text_lines:
            continue
        if not stripped:
            if text_lines:
                break
            continue
        text_lines.append(line.rstrip())

    return "\n".join(text_lines).strip() or None


def scan_global_information(lines: list[str]) -> dict[str, str]:
    """
    Read 'Key : Value' pairs under 'Global Information'.

    Keys are lower-cased ("status", "sql id", "plan hash", "duration").
    """
    start = _find_heading(lines, "global information")
    if start is None:
        return {}

    info: dict[str, str] = {}
    for line in lines[start + 1:]:
        stripped = line.strip()
        if not stripped:
            if info:
                break
            continue
        if _DASHES.match(stripped):
            continue
        match = _KEY_VALUE.match(line)
        if not match:
            break
        key = " ".join(match.group(1).lower().split())
        info[key] = match.group(2)
    return info


def scan_global_stats(lines: list[str]) -> dict[str, str]:
    """
    Read the 'Global Stats' table into label -> value.

    The header may wrap over several lines ("Elapsed" / "Time"); labels
    are joined per column and lower-cased ("elapsed time", "cpu time",
    "buffer gets").
    """
    start = _find_heading(lines, "global stats")
    if start is None:
        return {}

    header_rows: list[list[str]] = []
    value_row: list[str] | None = None
    separators = 0

    for line in lines[start + 1:]:
        stripped = line.strip()
        if not stripped:
            if separators:
                break
            continue
        if is_separator(stripped):
            separators += 1
            if separators >= 3:
                break
            continue
        if not stripped.startswith("|"):
            break

        cells = split_cells(stripped)
        if separators <= 1:
            header_rows.append(cells)
        elif value_row is None:
            value_row = cells

    if not header_rows or value_row is None:
        return {}

    width = max(len(row) for row in header_rows)
    labels: list[str] = []
    for column in range(width):
        parts = [row[column] for row in header_rows if column < len(row) and row[column]]
        labels.append(" ".join(" ".join(parts).lower().split()))

    return {
        label: value_row[column]
        for column, label in enumerate(labels)
        if label and column < len(value_row)
    }


def split_cells(line: str) -> list[str]:
    """Split '| a | b |' into ['a', 'b']."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


# =============================================================================
# Helpers
# =============================================================================


def _find_marker(lines: list[str], pattern: re.Pattern[str]) -> int | None:
    for index, line in enumerate(lines):
        if pattern.search(line):
            return index
    return None


def _find_heading(lines: list[str], heading: str) -> int | None:
    for index, line in enumerate(lines):
        if line.strip().lower() == heading:
            return index
    return None
