"""PlanSense - Oracle execution plan parser and comparer."""

__version__ = "0.3.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from plansense.exceptions import (
    ConfigurationError,
    ParseError,
    PlanSenseError,
)

from plansense.parser import (
    DEFAULT_CONFIG,
    STRICT_CONFIG,
    DetectedFormat,
    ParsedPlan,
    ParserConfig,
    PlanNode,
    PlanSource,
    detect_format,
    parse_plan,
    parse_plan_file,
    source_display_name,
)
from plansense.plan_diff import (
    ALL_COMPARE_METRICS,
    DEFAULT_COMPARE_METRICS,
    CompareMetric,
    ComparisonSummary,
    MatchType,
    NodeMatch,
    compute_comparison_summary,
    match_nodes,
    metric_label,
    node_metric_value,
)
from plansense.filtering import FilterSpec, PredicateType, matches_filters
from plansense.operations import cardinality_ratio, operation_category

__all__ = [
    "__version__",
    # Exceptions
    "PlanSenseError",
    "ParseError",
    "ConfigurationError",
    # Parsing
    "ParsedPlan",
    "PlanNode",
    "PlanSource",
    "DetectedFormat",
    "detect_format",
    "parse_plan",
    "parse_plan_file",
    "source_display_name",
    "ParserConfig",
    "DEFAULT_CONFIG",
    "STRICT_CONFIG",
    # Comparison
    "MatchType",
    "NodeMatch",
    "ComparisonSummary",
    "match_nodes",
    "compute_comparison_summary",
    "CompareMetric",
    "ALL_COMPARE_METRICS",
    "DEFAULT_COMPARE_METRICS",
    "node_metric_value",
    "metric_label",
    # Filtering
    "FilterSpec",
    "PredicateType",
    "matches_filters",
    "operation_category",
    "cardinality_ratio",
]
