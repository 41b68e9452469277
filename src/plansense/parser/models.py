"""
Pydantic models for normalized Oracle execution plans.

Every supported report dialect (DBMS_XPLAN text, SQL Monitor text,
SQL Monitor XML) is normalized into the same structure:
- ParsedPlan: One parsed report with plan-level metadata
- PlanNode: One plan operation (a "row source")

The tree is stored as an arena. ParsedPlan owns a flat, pre-order tuple
of nodes; each node refers to its children by id (``child_ids``) and to
its parent by ``parent_id``. Lookups go through the plan's id index, so
no node holds a reference to another node object.

Both models are frozen: a ParsedPlan is produced once by a parse call
and replaced wholesale on re-parse.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class PlanSource(str, Enum):
    """Report dialect a plan was parsed from."""

    DBMS_XPLAN = "dbms_xplan"
    SQL_MONITOR_TEXT = "sql_monitor_text"
    SQL_MONITOR_XML = "sql_monitor_xml"

    @property
    def display_name(self) -> str:
        return _SOURCE_DISPLAY_NAMES[self]

    @classmethod
    def is_known(cls, tag: object) -> bool:
        """
        Check whether a persisted source tag names a known dialect.

        Used before re-parsing raw text stored in an exported document.
        """
        return isinstance(tag, str) and tag in {s.value for s in cls}


_SOURCE_DISPLAY_NAMES = {
    PlanSource.DBMS_XPLAN: "DBMS_XPLAN",
    PlanSource.SQL_MONITOR_TEXT: "SQL Monitor (Text)",
    PlanSource.SQL_MONITOR_XML: "SQL Monitor (XML)",
}


def source_display_name(source: PlanSource | str | None) -> str:
    """Human-readable name for a plan source tag."""
    try:
        return PlanSource(source).display_name
    except ValueError:
        return "Unknown"


class PlanNode(BaseModel):
    """
    A single operation in an Oracle execution plan.

    Fields are divided into:
    - Identity: id, depth, parent/child links (by id)
    - Descriptive: operation text, object, alias, query block
    - Optimizer estimates: rows, bytes, cost, ...
    - Runtime actuals: only present when the report has them
    - Predicates: access/filter expressions as free text
    """

    model_config = ConfigDict(frozen=True)

    # =========================================================================
    # Identity
    # =========================================================================

    id: int = Field(..., description="Operation id assigned by the report")
    depth: int = Field(default=0, ge=0, description="Indentation level")
    parent_id: int | None = Field(default=None, description="Id of the parent operation")
    child_ids: tuple[int, ...] = Field(
        default=(),
        description="Ids of child operations in report order",
    )

    # =========================================================================
    # Descriptive
    # =========================================================================

    operation: str = Field(..., min_length=1, description="e.g. 'TABLE ACCESS FULL'")
    object_name: str | None = None
    alias: str | None = None
    query_block: str | None = None
    object_alias: str | None = None

    # =========================================================================
    # Optimizer estimates
    # =========================================================================

    rows: int | None = None
    bytes: int | None = None
    cost: int | None = None
    cpu_percent: int | None = None
    time: str | None = Field(default=None, description="Estimated time, kept as displayed")
    temp_space: int | None = None

    # =========================================================================
    # Runtime actuals (SQL Monitor, ALLSTATS)
    # =========================================================================

    actual_rows: int | None = None
    actual_time: float | None = Field(default=None, description="Milliseconds")
    starts: int | None = None
    memory_used: int | None = Field(default=None, description="Bytes")
    temp_used: int | None = Field(default=None, description="Bytes")
    physical_reads: int | None = None
    logical_reads: int | None = None
    activity_percent: float | None = None

    # =========================================================================
    # Predicates
    # =========================================================================

    access_predicates: str | None = None
    filter_predicates: str | None = None

    @property
    def has_actual_stats(self) -> bool:
        """True when any runtime counter is present on this node."""
        return any(
            value is not None
            for value in (
                self.actual_rows,
                self.actual_time,
                self.starts,
                self.memory_used,
                self.temp_used,
                self.physical_reads,
                self.logical_reads,
                self.activity_percent,
            )
        )

    @property
    def has_predicates(self) -> bool:
        return bool(self.access_predicates or self.filter_predicates)

    @property
    def is_leaf(self) -> bool:
        return not self.child_ids


class ParsedPlan(BaseModel):
    """
    One normalized plan report.

    ``nodes`` is the flat pre-order list (root first). An empty list means
    the input could not be parsed; ``root_node`` is then None.

    Usage:
        plan = parse_plan(text)
        if plan.root_node is None:
            ...  # nothing to render
        for node in plan.iter_nodes():
            print(node.depth * " ", node.operation)
    """

    model_config = ConfigDict(frozen=True)

    source: PlanSource
    nodes: tuple[PlanNode, ...] = ()
    root_id: int | None = None

    plan_hash_value: str | None = None
    sql_id: str | None = None
    sql_text: str | None = None
    status: str | None = None
    total_elapsed_time: float | None = Field(default=None, description="Milliseconds")

    has_actual_stats: bool = False

    _index: dict[int, PlanNode] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object) -> None:
        self._index = {node.id: node for node in self.nodes}

    @classmethod
    def empty(cls, source: PlanSource, **metadata: object) -> "ParsedPlan":
        """The "nothing parsed" result: no root, no nodes."""
        return cls(source=source, **metadata)

    # =========================================================================
    # Tree access
    # =========================================================================

    @property
    def all_nodes(self) -> list[PlanNode]:
        """All nodes in pre-order."""
        return list(self.nodes)

    @property
    def root_node(self) -> PlanNode | None:
        if self.root_id is None:
            return None
        return self._index.get(self.root_id)

    def get_node(self, node_id: int) -> PlanNode | None:
        return self._index.get(node_id)

    def children_of(self, node: PlanNode) -> list[PlanNode]:
        return [self._index[cid] for cid in node.child_ids if cid in self._index]

    def parent_of(self, node: PlanNode) -> PlanNode | None:
        if node.parent_id is None:
            return None
        return self._index.get(node.parent_id)

    def iter_nodes(self) -> Iterator[PlanNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    # =========================================================================
    # Aggregates
    # =========================================================================

    @property
    def total_cost(self) -> int:
        """Sum of every node's cost (0 when no node has one)."""
        return sum(node.cost or 0 for node in self.nodes)

    @property
    def max_rows(self) -> int:
        """Largest estimated row count, never below 0."""
        return max((node.rows or 0 for node in self.nodes), default=0)

    @property
    def max_actual_rows(self) -> int | None:
        values = [n.actual_rows for n in self.nodes if n.actual_rows is not None]
        return max(values) if values else None

    @property
    def max_starts(self) -> int | None:
        values = [n.starts for n in self.nodes if n.starts is not None]
        return max(values) if values else None
