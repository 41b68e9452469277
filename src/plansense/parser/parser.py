"""
Entry points for parsing Oracle plan reports.

This module handles:
- Routing raw text to the right dialect parser via detect_format()
- Reading report files with size limits
- Cutting oversized inputs to ParserConfig.max_input_chars

Error handling philosophy: content is never rejected. Text that cannot be
understood yields a ParsedPlan with no root, which callers surface as
"could not parse". Only problems reading the input itself (missing file,
unreadable file, file too large) raise ParseError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from plansense.exceptions import ParseError
from plansense.parser.config import DEFAULT_CONFIG, ParserConfig
from plansense.parser.detect import DetectedFormat, detect_format
from plansense.parser.models import ParsedPlan, PlanSource
from plansense.parser.monitor_text import parse_monitor_text
from plansense.parser.monitor_xml import parse_monitor_xml
from plansense.parser.xplan import parse_xplan_text

logger = logging.getLogger(__name__)

_PARSERS: dict[PlanSource, Callable[[str, ParserConfig | None], ParsedPlan]] = {
    PlanSource.DBMS_XPLAN: parse_xplan_text,
    PlanSource.SQL_MONITOR_TEXT: parse_monitor_text,
    PlanSource.SQL_MONITOR_XML: parse_monitor_xml,
}


def parse_plan(
    text: str,
    config: ParserConfig | None = None,
    *,
    source: PlanSource | str | None = None,
) -> ParsedPlan:
    """
    Parse an Oracle plan report of any supported dialect.

    Args:
        text: Raw DBMS_XPLAN output, SQL Monitor text, or SQL Monitor XML.
        config: Parser limits. If None, uses DEFAULT_CONFIG.
        source: Skip detection and use this dialect's parser. Used when
            re-parsing text stored together with its source tag.

    Returns:
        ParsedPlan. ``root_node`` is None when nothing could be parsed.

    Example:
        >>> plan = parse_plan(open("plan.txt").read())
        >>> if plan.root_node is None:
        ...     print("could not parse")
        >>> for node in plan.iter_nodes():
        ...     print(" " * node.depth + node.operation)
    """
    config = config or DEFAULT_CONFIG

    if len(text) > config.max_input_chars:
        logger.warning(
            "Input has %d characters, parsing the first %d (max_input_chars)",
            len(text),
            config.max_input_chars,
        )
        text = text[:config.max_input_chars]

    if source is not None:
        plan_source = PlanSource(source)
    else:
        detected = detect_format(text)
        if detected is DetectedFormat.UNKNOWN:
            logger.info("Plan format not recognized, trying the DBMS_XPLAN parser")
        plan_source = detected.plan_source

    plan = _PARSERS[plan_source](text, config)
    if plan.root_node is None:
        logger.info("No plan rows found in %s input", plan_source.display_name)
    return plan


def parse_plan_file(path: str | Path, config: ParserConfig | None = None) -> ParsedPlan:
    """
    Parse a plan report from a file.

    Convenience wrapper around parse_plan() with file-specific checks.

    Args:
        path: Path to the report file (text or XML).
        config: Parser limits. If None, uses DEFAULT_CONFIG.

    Returns:
        ParsedPlan

    Raises:
        ParseError: If the file is missing, unreadable, or too large.
    """
    config = config or DEFAULT_CONFIG
    filepath = Path(path)

    if not filepath.exists():
        raise ParseError(f"File not found: {filepath}", source=str(filepath))

    if not filepath.is_file():
        raise ParseError(f"Path is not a file: {filepath}", source=str(filepath))

    size_mb = filepath.stat().st_size / (1024 * 1024)
    if size_mb > config.max_file_size_mb:
        raise ParseError(
            f"File too large: {size_mb:.1f}MB (max {config.max_file_size_mb}MB)",
            source=str(filepath),
            detail="Use a smaller report or increase max_file_size_mb in config",
        )

    try:
        content = filepath.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ParseError(
            f"Cannot read file: {filepath}",
            source=str(filepath),
            detail=str(e),
        ) from e

    return parse_plan(content, config)


def has_runtime_stats(plan: ParsedPlan) -> bool:
    """True when the report carries actual (runtime) statistics."""
    return plan.has_actual_stats
