"""
Node matching and delta metrics for comparing two parsed plans.

Oracle assigns operation ids per plan, so the "same" operation can carry
a different id after a plan change. Matching is a best-effort heuristic
in three passes:

1. Exact id: same id in both plans and a similar operation (equal
   ignoring case, or the same first word, so "HASH JOIN" pairs with
   "HASH JOIN OUTER").
2. Heuristic: remaining nodes grouped by "OPERATION|OBJECT" signature;
   each A node takes the unused B candidate with the closest depth, the
   first-seen candidate winning ties.
3. Unmatched: everything left over, one side only.

Usage:
    from plansense.plan_diff import compute_comparison_summary, match_nodes

    matches = match_nodes(before_plan, after_plan)
    summary = compute_comparison_summary(before_plan, after_plan, matches)
    print(f"Cost {summary.cost_delta:+d} ({summary.cost_delta_percent:+.1f}%)")
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from plansense.parser.models import ParsedPlan, PlanNode


class MatchType(str, Enum):
    """How two nodes were paired."""

    EXACT_ID = "exact-id"
    HEURISTIC = "heuristic"
    UNMATCHED = "unmatched"

    @property
    def priority(self) -> int:
        return _MATCH_PRIORITY[self]


_MATCH_PRIORITY = {
    MatchType.EXACT_ID: 0,
    MatchType.HEURISTIC: 1,
    MatchType.UNMATCHED: 2,
}


@dataclass(frozen=True)
class NodeMatch:
    """
    A pairing of one node from plan A with one node from plan B.

    One side is None only for UNMATCHED entries.
    """

    match_type: MatchType
    plan_a_node: PlanNode | None
    plan_b_node: PlanNode | None

    def __post_init__(self) -> None:
        if self.plan_a_node is None and self.plan_b_node is None:
            raise ValueError("NodeMatch needs at least one node")
        if self.match_type is not MatchType.UNMATCHED and (
            self.plan_a_node is None or self.plan_b_node is None
        ):
            raise ValueError(f"{self.match_type.value} match needs both nodes")

    @property
    def sort_id(self) -> int:
        """A's id when present, otherwise B's."""
        if self.plan_a_node is not None:
            return self.plan_a_node.id
        if self.plan_b_node is not None:
            return self.plan_b_node.id
        return 0

    @property
    def is_matched(self) -> bool:
        return self.match_type is not MatchType.UNMATCHED


@dataclass(frozen=True)
class ComparisonSummary:
    """
    Aggregate deltas between plan A (before) and plan B (after).

    Time fields are None unless both plans report an elapsed time.
    """

    total_cost_a: int
    total_cost_b: int
    cost_delta: int
    cost_delta_percent: float
    matched_count: int
    unmatched_a_count: int
    unmatched_b_count: int
    total_elapsed_time_a: float | None = None
    total_elapsed_time_b: float | None = None
    time_delta: float | None = None
    time_delta_percent: float | None = None

    @property
    def is_improvement(self) -> bool:
        """True if plan B is cheaper (or faster, when times are known)."""
        if self.time_delta is not None:
            return self.time_delta < 0
        return self.cost_delta < 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Matching
# =============================================================================


def operations_similar(a: PlanNode, b: PlanNode) -> bool:
    """Equal ignoring case, or sharing the first word of the operation."""
    if a.operation.upper() == b.operation.upper():
        return True
    return _first_word(a.operation) == _first_word(b.operation)


def node_signature(node: PlanNode) -> str:
    """'OPERATION|OBJECT' key used by the heuristic pass."""
    return f"{node.operation.upper()}|{(node.object_name or '').upper()}"


def match_nodes(plan_a: ParsedPlan, plan_b: ParsedPlan) -> list[NodeMatch]:
    """
    Pair up the nodes of two plans.

    Every node of both plans appears in exactly one NodeMatch. The
    result is ordered by match type (exact id, heuristic, unmatched),
    then by node id (A's id when present).

    Args:
        plan_a: The "before" plan.
        plan_b: The "after" plan.

    Returns:
        List of NodeMatch covering all nodes of both plans.
    """
    matches: list[NodeMatch] = []
    matched_a: set[int] = set()
    matched_b: set[int] = set()

    # Pass 1: exact id
    for a_node in plan_a.nodes:
        b_node = plan_b.get_node(a_node.id)
        if b_node is None or b_node.id in matched_b:
            continue
        if operations_similar(a_node, b_node):
            matches.append(NodeMatch(MatchType.EXACT_ID, a_node, b_node))
            matched_a.add(a_node.id)
            matched_b.add(b_node.id)

    # Pass 2: signature + closest depth
    buckets: dict[str, list[PlanNode]] = {}
    for b_node in plan_b.nodes:
        if b_node.id not in matched_b:
            buckets.setdefault(node_signature(b_node), []).append(b_node)

    for a_node in plan_a.nodes:
        if a_node.id in matched_a:
            continue
        candidates = buckets.get(node_signature(a_node))
        if not candidates:
            continue

        best_index = _closest_depth(candidates, a_node.depth)
        b_node = candidates.pop(best_index)
        matches.append(NodeMatch(MatchType.HEURISTIC, a_node, b_node))
        matched_a.add(a_node.id)
        matched_b.add(b_node.id)

    # Pass 3: leftovers
    for a_node in plan_a.nodes:
        if a_node.id not in matched_a:
            matches.append(NodeMatch(MatchType.UNMATCHED, a_node, None))
    for b_node in plan_b.nodes:
        if b_node.id not in matched_b:
            matches.append(NodeMatch(MatchType.UNMATCHED, None, b_node))

    # sorted() is stable, so equal keys keep pass order
    return sorted(matches, key=lambda m: (m.match_type.priority, m.sort_id))


def _first_word(operation: str) -> str:
    parts = operation.split()
    return parts[0].upper() if parts else ""


def _closest_depth(candidates: list[PlanNode], depth: int) -> int:
    """Index of the candidate nearest in depth; the earliest wins ties."""
    best_index = 0
    best_distance = abs(candidates[0].depth - depth)
    for index in range(1, len(candidates)):
        distance = abs(candidates[index].depth - depth)
        if distance < best_distance:
            best_index = index
            best_distance = distance
    return best_index


# =============================================================================
# Summary
# =============================================================================


def compute_comparison_summary(
    plan_a: ParsedPlan,
    plan_b: ParsedPlan,
    matches: list[NodeMatch],
) -> ComparisonSummary:
    """
    Aggregate cost and elapsed time deltas plus match counts.

    Percentages are relative to plan A and are 0 when A's value is 0.
    """
    total_cost_a = plan_a.total_cost
    total_cost_b = plan_b.total_cost
    cost_delta = total_cost_b - total_cost_a

    time_a = plan_a.total_elapsed_time
    time_b = plan_b.total_elapsed_time
    time_delta: float | None = None
    time_delta_percent: float | None = None
    if time_a is not None and time_b is not None:
        time_delta = time_b - time_a
        time_delta_percent = _percent_of(time_delta, time_a)

    matched_count = 0
    unmatched_a_count = 0
    unmatched_b_count = 0
    for match in matches:
        if match.is_matched:
            matched_count += 1
        elif match.plan_a_node is not None and match.plan_b_node is None:
            unmatched_a_count += 1
        else:
            unmatched_b_count += 1

    return ComparisonSummary(
        total_cost_a=total_cost_a,
        total_cost_b=total_cost_b,
        cost_delta=cost_delta,
        cost_delta_percent=_percent_of(cost_delta, total_cost_a),
        matched_count=matched_count,
        unmatched_a_count=unmatched_a_count,
        unmatched_b_count=unmatched_b_count,
        total_elapsed_time_a=time_a,
        total_elapsed_time_b=time_b,
        time_delta=time_delta,
        time_delta_percent=time_delta_percent,
    )


def _percent_of(delta: float, base: float) -> float:
    if base > 0:
        return delta / base * 100
    return 0.0


# =============================================================================
# Per-node metrics
# =============================================================================


class CompareMetric(str, Enum):
    """Node metrics shown side by side in a comparison."""

    COST = "cost"
    ROWS = "rows"
    BYTES = "bytes"
    ACTUAL_ROWS = "actual_rows"
    ACTUAL_TIME = "actual_time"
    STARTS = "starts"
    TEMP_SPACE = "temp_space"
    MEMORY_USED = "memory_used"


_METRIC_LABELS = {
    CompareMetric.COST: "Cost",
    CompareMetric.ROWS: "E-Rows",
    CompareMetric.BYTES: "Bytes",
    CompareMetric.ACTUAL_ROWS: "A-Rows",
    CompareMetric.ACTUAL_TIME: "A-Time",
    CompareMetric.STARTS: "Starts",
    CompareMetric.TEMP_SPACE: "Temp Space",
    CompareMetric.MEMORY_USED: "Memory",
}

ALL_COMPARE_METRICS: tuple[CompareMetric, ...] = tuple(CompareMetric)

DEFAULT_COMPARE_METRICS: tuple[CompareMetric, ...] = (
    CompareMetric.COST,
    CompareMetric.ACTUAL_ROWS,
    CompareMetric.ACTUAL_TIME,
)


def node_metric_value(node: PlanNode, metric: CompareMetric | str) -> float | None:
    """
    Value of one comparison metric on a node.

    Temp space prefers the measured temp usage over the estimate.
    """
    metric = CompareMetric(metric)
    if metric is CompareMetric.TEMP_SPACE:
        return node.temp_used if node.temp_used is not None else node.temp_space
    return getattr(node, metric.value)


def metric_label(metric: CompareMetric | str) -> str:
    """Column label for a metric ('A-Rows', 'Temp Space', ...)."""
    return _METRIC_LABELS[CompareMetric(metric)]
