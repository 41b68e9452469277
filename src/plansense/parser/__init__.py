"""Oracle execution plan parsing module."""

from plansense.parser.config import DEFAULT_CONFIG, STRICT_CONFIG, ParserConfig
from plansense.parser.detect import DETECTION_ORDER, DetectedFormat, detect_format
from plansense.parser.models import ParsedPlan, PlanNode, PlanSource, source_display_name
from plansense.parser.monitor_text import parse_monitor_text
from plansense.parser.monitor_xml import parse_monitor_xml
from plansense.parser.parser import has_runtime_stats, parse_plan, parse_plan_file
from plansense.parser.xplan import parse_xplan_text

__all__ = [
    "ParsedPlan",
    "PlanNode",
    "PlanSource",
    "source_display_name",
    "DetectedFormat",
    "DETECTION_ORDER",
    "detect_format",
    "parse_plan",
    "parse_plan_file",
    "parse_xplan_text",
    "parse_monitor_text",
    "parse_monitor_xml",
    "has_runtime_stats",
    "ParserConfig",
    "DEFAULT_CONFIG",
    "STRICT_CONFIG",
]
