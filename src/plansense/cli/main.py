"""
PlanSense CLI - Oracle execution plan reader and comparer.

Supports DBMS_XPLAN output and SQL Monitor reports (text and XML).

Usage:
    plansense detect plan.txt
    plansense parse plan.txt --min-cost 100
    plansense compare before.txt after.xml --metric cost --metric actual_rows
    plansense --help
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from plansense import __version__
from plansense.config import get_config
from plansense.exceptions import ConfigurationError, ParseError
from plansense.filtering import FilterSpec, PredicateType, filter_nodes
from plansense.formatting import format_number_short, format_time_short
from plansense.operations import operation_category
from plansense.parser import ParsedPlan, PlanNode, detect_format, parse_plan_file
from plansense.plan_diff import (
    CompareMetric,
    MatchType,
    NodeMatch,
    compute_comparison_summary,
    match_nodes,
    metric_label,
    node_metric_value,
)

logger = logging.getLogger("plansense")

app = typer.Typer(
    name="plansense",
    help="Oracle execution plan reader (DBMS_XPLAN, SQL Monitor text & XML)",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

_MATCH_STYLES = {
    MatchType.EXACT_ID: "green",
    MatchType.HEURISTIC: "yellow",
    MatchType.UNMATCHED: "red",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"PlanSense version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            help="DEBUG, INFO, WARNING or ERROR (default from PLANSENSE_LOG_LEVEL).",
        ),
    ] = None,
) -> None:
    """PlanSense - Oracle execution plan reader."""
    try:
        level = log_level or get_config().log_level
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(code=2)
    configure_logging(level)


def _load_plan(path: Path) -> ParsedPlan:
    """Parse a file or exit with code 1."""
    try:
        plan = parse_plan_file(path, get_config().parser_config())
    except ParseError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        if e.detail:
            error_console.print(f"\n[dim]{e.detail}[/dim]")
        raise typer.Exit(code=1)

    if plan.root_node is None:
        error_console.print(f"[red]Error:[/red] Could not parse an execution plan from {path}")
        raise typer.Exit(code=1)
    return plan


@app.command()
def detect(
    plan_file: Annotated[
        Path,
        typer.Argument(
            help="Path to a plan report",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
) -> None:
    """Print the detected report format."""
    text = plan_file.read_text(encoding="utf-8", errors="replace")
    detected = detect_format(text)
    console.print(detected.value)


@app.command()
def parse(
    plan_file: Annotated[
        Path,
        typer.Argument(
            help="Path to a plan report (text or XML)",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output the parsed plan as JSON"),
    ] = False,
    operations: Annotated[
        Optional[list[str]],
        typer.Option("--op", help="Only operations containing this text (repeatable)"),
    ] = None,
    min_cost: Annotated[
        Optional[float],
        typer.Option("--min-cost", help="Minimum node cost"),
    ] = None,
    max_cost: Annotated[
        Optional[float],
        typer.Option("--max-cost", help="Maximum node cost"),
    ] = None,
    search: Annotated[
        Optional[str],
        typer.Option("--search", "-s", help="Search operation, object and predicates"),
    ] = None,
    predicates: Annotated[
        Optional[list[PredicateType]],
        typer.Option("--predicate", help="access, filter or none (repeatable)"),
    ] = None,
    min_mismatch: Annotated[
        Optional[float],
        typer.Option("--min-mismatch", help="Minimum estimate error factor (runtime plans)"),
    ] = None,
) -> None:
    """
    Parse a plan report and show its operations.

    Examples:

        $ plansense parse plan.txt
        $ plansense parse monitor.xml --op "TABLE ACCESS" --min-mismatch 10
        $ plansense parse plan.txt --json > plan.json
    """
    plan = _load_plan(plan_file)

    overrides: dict[str, Any] = {}
    if operations:
        overrides["operation_types"] = tuple(operations)
    if min_cost is not None:
        overrides["min_cost"] = min_cost
    if max_cost is not None:
        overrides["max_cost"] = max_cost
    if search is not None:
        overrides["search_text"] = search
    if predicates:
        overrides["predicate_types"] = tuple(predicates)
    if min_mismatch is not None:
        overrides["min_cardinality_mismatch"] = min_mismatch

    spec = get_config().default_filter.model_copy(update=overrides)
    visible = filter_nodes(plan.all_nodes, spec, plan.has_actual_stats)
    logger.debug("%d of %d nodes pass the filter", len(visible), len(plan))

    if json_output:
        payload = plan.model_dump(mode="json", exclude={"nodes"})
        payload["total_cost"] = plan.total_cost
        payload["max_rows"] = plan.max_rows
        payload["nodes"] = [node.model_dump(mode="json") for node in visible]
        console.print_json(json.dumps(payload))
        return

    console.print(_plan_header(plan))
    console.print(_node_table(visible, plan.has_actual_stats))

    if len(visible) < len(plan):
        console.print(f"[dim]{len(visible)} of {len(plan)} operations shown[/dim]")


@app.command()
def compare(
    before_file: Annotated[
        Path,
        typer.Argument(help="Plan A (before)", exists=True, readable=True, resolve_path=True),
    ],
    after_file: Annotated[
        Path,
        typer.Argument(help="Plan B (after)", exists=True, readable=True, resolve_path=True),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output matches and summary as JSON"),
    ] = False,
    metrics: Annotated[
        Optional[list[CompareMetric]],
        typer.Option("--metric", "-m", help="Metric to compare (repeatable)"),
    ] = None,
) -> None:
    """
    Match the operations of two plans and summarize the differences.

    Examples:

        $ plansense compare before.txt after.txt
        $ plansense compare before.xml after.xml -m cost -m actual_time
    """
    plan_a = _load_plan(before_file)
    plan_b = _load_plan(after_file)
    selected = tuple(metrics) if metrics else get_config().compare_metrics

    matches = match_nodes(plan_a, plan_b)
    summary = compute_comparison_summary(plan_a, plan_b, matches)

    if json_output:
        payload = {
            "summary": summary.to_dict(),
            "matches": [_match_dict(match, selected) for match in matches],
        }
        console.print_json(json.dumps(payload))
        return

    console.print(_match_table(matches, selected))

    lines = [
        f"Cost: {summary.total_cost_a} -> {summary.total_cost_b} "
        f"({summary.cost_delta:+d}, {summary.cost_delta_percent:+.1f}%)",
    ]
    if summary.time_delta is not None and summary.time_delta_percent is not None:
        lines.append(
            f"Elapsed: {format_time_short(summary.total_elapsed_time_a)} -> "
            f"{format_time_short(summary.total_elapsed_time_b)} "
            f"({summary.time_delta_percent:+.1f}%)"
        )
    lines.append(
        f"Matched: {summary.matched_count}  "
        f"Only in A: {summary.unmatched_a_count}  "
        f"Only in B: {summary.unmatched_b_count}"
    )

    border = "green" if summary.is_improvement else "yellow"
    console.print(Panel("\n".join(lines), title="Comparison", border_style=border))


# =============================================================================
# Rendering helpers
# =============================================================================


def _plan_header(plan: ParsedPlan) -> Panel:
    lines = [f"Source: {plan.source.display_name}"]
    if plan.sql_id:
        lines.append(f"SQL ID: {plan.sql_id}")
    if plan.plan_hash_value:
        lines.append(f"Plan hash value: {plan.plan_hash_value}")
    if plan.status:
        lines.append(f"Status: {plan.status}")
    if plan.total_elapsed_time is not None:
        lines.append(f"Elapsed: {format_time_short(plan.total_elapsed_time)}")
    lines.append(f"Operations: {len(plan)}  Total cost: {plan.total_cost}")
    return Panel("\n".join(lines), title="PlanSense", border_style="blue")


def _node_table(nodes: list[PlanNode], has_actual_stats: bool) -> Table:
    table = Table()
    table.add_column("Id", justify="right", style="cyan")
    table.add_column("Operation")
    table.add_column("Name")
    table.add_column("Rows", justify="right")
    table.add_column("Cost", justify="right")
    if has_actual_stats:
        table.add_column("A-Rows", justify="right")
        table.add_column("A-Time", justify="right")
        table.add_column("Starts", justify="right")
    table.add_column("Category", style="dim")

    for node in nodes:
        marker = "*" if node.has_predicates else " "
        row = [
            f"{marker}{node.id}",
            " " * node.depth + node.operation,
            node.object_name or "",
            format_number_short(node.rows, empty=""),
            "" if node.cost is None else str(node.cost),
        ]
        if has_actual_stats:
            row += [
                format_number_short(node.actual_rows, empty=""),
                format_time_short(node.actual_time, empty=""),
                format_number_short(node.starts, empty=""),
            ]
        row.append(operation_category(node.operation))
        table.add_row(*row)

    return table


def _match_table(matches: list[NodeMatch], metrics: tuple[CompareMetric, ...]) -> Table:
    table = Table()
    table.add_column("Match")
    table.add_column("A Id", justify="right", style="cyan")
    table.add_column("B Id", justify="right", style="cyan")
    table.add_column("Operation")
    for metric in metrics:
        table.add_column(f"{metric_label(metric)} A", justify="right")
        table.add_column(f"{metric_label(metric)} B", justify="right")

    for match in matches:
        a, b = match.plan_a_node, match.plan_b_node
        style = _MATCH_STYLES[match.match_type]
        shown = a if a is not None else b
        row = [
            f"[{style}]{match.match_type.value}[/{style}]",
            "" if a is None else str(a.id),
            "" if b is None else str(b.id),
            shown.operation if shown is not None else "",
        ]
        for metric in metrics:
            row.append(_metric_cell(a, metric))
            row.append(_metric_cell(b, metric))
        table.add_row(*row)

    return table


def _metric_cell(node: PlanNode | None, metric: CompareMetric) -> str:
    if node is None:
        return ""
    value = node_metric_value(node, metric)
    if value is None:
        return ""
    if metric is CompareMetric.ACTUAL_TIME:
        return format_time_short(value) or ""
    return format_number_short(value) or ""


def _match_dict(match: NodeMatch, metrics: tuple[CompareMetric, ...]) -> dict[str, Any]:
    a, b = match.plan_a_node, match.plan_b_node
    return {
        "match_type": match.match_type.value,
        "plan_a_id": None if a is None else a.id,
        "plan_b_id": None if b is None else b.id,
        "operation_a": None if a is None else a.operation,
        "operation_b": None if b is None else b.operation,
        "metrics": {
            metric.value: [
                None if a is None else node_metric_value(a, metric),
                None if b is None else node_metric_value(b, metric),
            ]
            for metric in metrics
        },
    }


if __name__ == "__main__":
    app()
