"""
Fixed-width table layout shared by the text parsers.

Oracle prints plan tables with '|' separated columns whose widths vary
between reports. The header row is the only reliable source of column
positions: each segment between two pipes is matched against a column
vocabulary, and data rows are then read by character range.

Unknown columns are ignored and missing optional columns are simply
absent from the layout.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator

from plansense.parser.numeric import parse_leading_int
from plansense.parser.sections import is_separator

ID_OPERATION_HEADER = re.compile(r"\|\s*Id\s*\|.*Operation", re.IGNORECASE)


@dataclass(frozen=True)
class ColumnRange:
    """Character range [start, end) of one column."""

    start: int
    end: int

    def slice(self, line: str) -> str:
        return line[self.start:self.end]


@dataclass(frozen=True)
class ColumnRule:
    """Maps header labels to a row field: exact names or a substring."""

    field: str
    names: frozenset[str] = frozenset()
    contains: str | None = None

    def matches(self, label: str) -> bool:
        if label in self.names:
            return True
        return self.contains is not None and self.contains in label


def rule(field_name: str, *names: str, contains: str | None = None) -> ColumnRule:
    return ColumnRule(field=field_name, names=frozenset(names), contains=contains)


@dataclass
class TableLayout:
    """Column ranges by field name, plus the header block extent."""

    columns: dict[str, ColumnRange] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    segment_indexes: dict[str, int] = field(default_factory=dict)
    segment_count: int = 0
    header_index: int = -1
    header_end: int = -1

    def has(self, name: str) -> bool:
        return name in self.columns

    def for_row(self, line: str) -> TableLayout:
        """
        Layout to read one data row with.

        An operation one character too wide for its column pushes the
        row's pipes right of the header's. When the row still has the
        header's pipe count, its own pipe positions are used.
        """
        segments = pipe_segments(line)
        if len(segments) != self.segment_count:
            return self

        columns = {name: segments[index] for name, index in self.segment_indexes.items()}
        if columns == self.columns:
            return self

        return TableLayout(
            columns=columns,
            labels=self.labels,
            segment_indexes=self.segment_indexes,
            segment_count=self.segment_count,
            header_index=self.header_index,
            header_end=self.header_end,
        )

    def cell(self, line: str, name: str) -> str | None:
        """Trimmed text of a column, or None if the column is absent."""
        column = self.columns.get(name)
        if column is None:
            return None
        return column.slice(line).strip()

    def raw_cell(self, line: str, name: str) -> str | None:
        """Untrimmed text of a column (leading spaces carry depth)."""
        column = self.columns.get(name)
        if column is None:
            return None
        return column.slice(line)

    def is_data_row(self, line: str) -> bool:
        """A '|' row whose id cell holds an integer."""
        if not line.strip().startswith("|") or not self.has("id"):
            return False
        return parse_leading_int(self.cell(line, "id")) is not None


def find_header(lines: list[str], pattern: re.Pattern[str] = ID_OPERATION_HEADER) -> int | None:
    """Index of the first header row containing Id and Operation columns."""
    for index, line in enumerate(lines):
        if pattern.search(line):
            return index
    return None


def pipe_segments(header_line: str) -> list[ColumnRange]:
    """Ranges between consecutive '|' characters."""
    positions = [i for i, char in enumerate(header_line) if char == "|"]
    return [
        ColumnRange(start=positions[i] + 1, end=positions[i + 1])
        for i in range(len(positions) - 1)
    ]


def build_layout(
    lines: list[str],
    header_index: int,
    vocabulary: tuple[ColumnRule, ...],
) -> TableLayout:
    """
    Derive column ranges from the header at ``header_index``.

    Header rows that wrap onto following lines (before the next rule
    line) are merged per column, so "Rows" over "(Actual)" is matched
    as "rows (actual)".
    """
    header_line = lines[header_index]
    segments = pipe_segments(header_line)

    texts = [segment.slice(header_line) for segment in segments]
    header_end = header_index

    for follow in lines[header_index + 1:]:
        stripped = follow.strip()
        if not stripped.startswith("|") or is_separator(stripped):
            break
        if segments and parse_leading_int(segments[0].slice(follow)) is not None:
            break
        for position, segment in enumerate(segments):
            texts[position] = f"{texts[position]} {segment.slice(follow)}"
        header_end += 1

    layout = TableLayout(
        header_index=header_index,
        header_end=header_end,
        segment_count=len(segments),
    )
    for position, (segment, text) in enumerate(zip(segments, texts)):
        label = " ".join(text.lower().split())
        if not label:
            continue
        for column_rule in vocabulary:
            if column_rule.field in layout.columns:
                continue
            if column_rule.matches(label):
                layout.columns[column_rule.field] = segment
                layout.labels[column_rule.field] = label
                layout.segment_indexes[column_rule.field] = position
                break

    return layout


def iter_data_lines(lines: list[str], layout: TableLayout) -> Iterator[str]:
    """
    Yield table lines after the header, up to the closing rule.

    At a rule line the scan looks ahead, crossing at most one more rule,
    for another data row. This keeps reading wrapped tables that repeat
    their header block, and stops at prose such as "Predicate Information".
    """
    index = layout.header_end + 1
    while index < len(lines):
        line = lines[index]
        stripped = line.strip()

        if is_separator(stripped):
            if not _more_rows_follow(lines, index + 1, layout):
                return
        elif stripped.startswith("|"):
            yield line

        index += 1


def _more_rows_follow(lines: list[str], start: int, layout: TableLayout) -> bool:
    crossed_rule = False
    for line in lines[start:]:
        stripped = line.strip()
        if not stripped:
            continue
        if is_separator(stripped):
            if crossed_rule:
                return False
            crossed_rule = True
            continue
        if not stripped.startswith("|"):
            return False
        if layout.is_data_row(line):
            return True
    return False


def leading_spaces(text: str) -> int:
    """Count of space characters before the first non-space."""
    return len(text) - len(text.lstrip(" "))
