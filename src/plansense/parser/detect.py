"""
Report format detection.

Checks run in a fixed priority order, most distinctive signature first:

1. SQL Monitor XML (XML declaration or <report>, plus a monitoring element)
2. SQL Monitor text (report headings or monitoring-only columns)
3. DBMS_XPLAN table (a row with both an Id and an Operation column)

Input matching none of these is reported as UNKNOWN; parse_plan() still
hands it to the DBMS_XPLAN parser as a best effort.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from plansense.parser import monitor_text, monitor_xml, xplan
from plansense.parser.models import PlanSource

logger = logging.getLogger(__name__)


class DetectedFormat(str, Enum):
    """Result of detect_format()."""

    SQL_MONITOR_XML = "sql_monitor_xml"
    SQL_MONITOR_TEXT = "sql_monitor_text"
    DBMS_XPLAN = "dbms_xplan"
    UNKNOWN = "unknown"

    @property
    def plan_source(self) -> PlanSource:
        """Parser the format is routed to (UNKNOWN falls back to DBMS_XPLAN)."""
        if self is DetectedFormat.UNKNOWN:
            return PlanSource.DBMS_XPLAN
        return PlanSource(self.value)


# Ordered: the first matching check wins.
DETECTION_ORDER: tuple[tuple[DetectedFormat, Callable[[str], bool]], ...] = (
    (DetectedFormat.SQL_MONITOR_XML, monitor_xml.can_parse),
    (DetectedFormat.SQL_MONITOR_TEXT, monitor_text.can_parse),
    (DetectedFormat.DBMS_XPLAN, xplan.can_parse),
)


def detect_format(text: str) -> DetectedFormat:
    """
    Classify raw report text.

    Pure function of its input: no state is kept between calls.
    """
    for detected, check in DETECTION_ORDER:
        if check(text):
            logger.debug("Detected plan format: %s", detected.value)
            return detected

    logger.debug("No plan format signature found")
    return DetectedFormat.UNKNOWN
