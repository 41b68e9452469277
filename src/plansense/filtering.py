"""
Node visibility filters.

A FilterSpec describes what a viewer wants to see; matches_filters()
decides for one node. All active criteria must hold. Runtime criteria
(actual rows, actual time, cardinality mismatch) only apply when the
plan carries runtime statistics.
"""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from plansense.operations import cardinality_deviation
from plansense.parser.models import PlanNode


class PredicateType(str, Enum):
    ACCESS = "access"
    FILTER = "filter"
    NONE = "none"


class FilterSpec(BaseModel):
    """
    Filter criteria. Defaults let every node through.

    Attributes:
        operation_types: Substrings of the operation (any may match).
        min_cost / max_cost: Inclusive cost range; a missing cost counts as 0.
        search_text: Case-insensitive search over operation, object and predicates.
        predicate_types: Has access / has filter / has neither (any may match).
        min_actual_rows / max_actual_rows: Inclusive range, runtime plans only.
        min_actual_time / max_actual_time: Inclusive range in ms, runtime plans only.
        min_cardinality_mismatch: Minimum estimate error factor; 0 disables.
    """

    model_config = ConfigDict(frozen=True)

    operation_types: tuple[str, ...] = ()
    min_cost: float = 0
    max_cost: float = math.inf
    search_text: str = ""
    predicate_types: tuple[PredicateType, ...] = ()
    min_actual_rows: float = 0
    max_actual_rows: float = math.inf
    min_actual_time: float = 0
    max_actual_time: float = math.inf
    min_cardinality_mismatch: float = Field(default=0, ge=0)

    @property
    def is_default(self) -> bool:
        return self == FilterSpec()


def matches_search(node: PlanNode, search_text: str) -> bool:
    """Substring search over operation, object name, and predicates."""
    needle = search_text.strip().lower()
    if not needle:
        return True

    haystacks = (
        node.operation,
        node.object_name,
        node.access_predicates,
        node.filter_predicates,
    )
    return any(text and needle in text.lower() for text in haystacks)


def matches_predicate_types(node: PlanNode, predicate_types: tuple[PredicateType, ...]) -> bool:
    """Empty selection passes everything."""
    if not predicate_types:
        return True

    has_access = bool(node.access_predicates)
    has_filter = bool(node.filter_predicates)

    for predicate_type in predicate_types:
        predicate_type = PredicateType(predicate_type)
        if predicate_type is PredicateType.ACCESS and has_access:
            return True
        if predicate_type is PredicateType.FILTER and has_filter:
            return True
        if predicate_type is PredicateType.NONE and not has_access and not has_filter:
            return True
    return False


def matches_operation_types(node: PlanNode, operation_types: tuple[str, ...]) -> bool:
    """Case-insensitive containment; empty selection passes everything."""
    if not operation_types:
        return True
    operation = node.operation.upper()
    return any(op_type.upper() in operation for op_type in operation_types)


def matches_filters(node: PlanNode, spec: FilterSpec, has_actual_stats: bool) -> bool:
    """
    Decide whether a node is visible under ``spec``.

    Args:
        node: The node to test.
        spec: Active filter criteria.
        has_actual_stats: Whether the plan carries runtime statistics.

    Returns:
        True when every applicable criterion holds.
    """
    if not matches_operation_types(node, spec.operation_types):
        return False

    cost = node.cost or 0
    if cost < spec.min_cost or cost > spec.max_cost:
        return False

    if has_actual_stats and node.actual_rows is not None:
        if node.actual_rows < spec.min_actual_rows or node.actual_rows > spec.max_actual_rows:
            return False

    if has_actual_stats and node.actual_time is not None:
        if node.actual_time < spec.min_actual_time or node.actual_time > spec.max_actual_time:
            return False

    if has_actual_stats and spec.min_cardinality_mismatch > 0:
        deviation = cardinality_deviation(node.rows, node.actual_rows)
        # Nodes without both numbers cannot show a mismatch
        if deviation is None or deviation < spec.min_cardinality_mismatch:
            return False

    if not matches_predicate_types(node, spec.predicate_types):
        return False

    return matches_search(node, spec.search_text)


def filter_nodes(nodes: list[PlanNode], spec: FilterSpec, has_actual_stats: bool) -> list[PlanNode]:
    """Nodes passing matches_filters(), in their original order."""
    return [node for node in nodes if matches_filters(node, spec, has_actual_stats)]
