"""
analyze command - estimate the monthly cost delta between two templates.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from costdelta.cli.errors import EXIT_CODE_MAP, handle_errors
from costdelta.cli.output import emit_json, resolve_format
from costdelta.core.config import AnalyzerConfig, load_config
from costdelta.core.pipeline import CostPipeline, PipelineResult
from costdelta.core.schema import Confidence, MonthlyCost, TemplateSnapshot, ThresholdLevel
from costdelta.core.templates import DirectoryTemplateSource, load_template, stack_name
from costdelta.core.thresholds import format_usd

console = Console()
log = logging.getLogger(__name__)

CONFIDENCE_STYLE = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "red",
    Confidence.UNKNOWN: "dim",
}


def build_pipeline(config: AnalyzerConfig, region: str) -> CostPipeline:
    return CostPipeline.from_config(config, region)


def load_pairs(base: Path, target: Path) -> Dict[str, Tuple[TemplateSnapshot, TemplateSnapshot]]:
    """
    (base, target) snapshot pairs keyed by stack name.

    Two files form one pair, named after the target file. Two directories
    are paired by template file name; a stack present on one side only is
    diffed against an empty one.
    """
    if base.is_dir() != target.is_dir():
        raise typer.BadParameter("BASE and TARGET must both be files or both be directories")
    if not base.is_dir():
        return {stack_name(target.name): (load_template(base), load_template(target))}

    source = DirectoryTemplateSource()
    base_stacks = source.load_named(str(base))
    target_stacks = source.load_named(str(target))
    empty = TemplateSnapshot()
    return {
        stack_name(name): (base_stacks.get(name, empty), target_stacks.get(name, empty))
        for name in sorted(set(base_stacks) | set(target_stacks))
    }


@handle_errors
def analyze_cmd(
    base: Path = typer.Argument(..., help="Base template (or directory of synthesized templates)"),
    target: Path = typer.Argument(..., help="Target template (or directory of synthesized templates)"),
    region: str = typer.Option(
        "us-east-1",
        "--region",
        "-r",
        help="AWS region to price resources in",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: .costdelta.yml in the working directory)",
    ),
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Environment name used to select thresholds",
    ),
    format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format: text, json (defaults to json when piped)",
    ),
    no_cache: bool = typer.Option(
        False,
        "--no-cache",
        help="Do not read or write the on-disk price cache",
    ),
):
    """
    Estimate the monthly cost impact of a template change.

    Exits 1 when the delta exceeds the error threshold.

    Examples:

        costdelta analyze cdk.out.main/App.template.json cdk.out/App.template.json

        costdelta analyze base/ target/ --environment production --format json
    """
    output_format = resolve_format(format, default_tty="text", allowed=["text", "json"])

    config = load_config(config_path)
    if no_cache:
        config = config.model_copy(
            update={"cache": config.cache.model_copy(update={"enabled": False})}
        )

    pipeline = build_pipeline(config, region)
    if base.is_dir():
        # Stacks may share logical ids, so results carry <stack>/<logical id>
        stacks = load_pairs(base, target)
        result = pipeline.run_stacks(stacks, region=region, environment=environment)
    else:
        (pair,) = load_pairs(base, target).values()
        result = pipeline.run(*pair, region=region, environment=environment)

    if output_format == "json":
        emit_json(result.model_dump(mode="json"))
    else:
        _output_text(result)

    if not result.threshold.passed:
        raise typer.Exit(EXIT_CODE_MAP["threshold"])
    raise typer.Exit(EXIT_CODE_MAP["ok"])


def _cost_cell(cost: MonthlyCost) -> str:
    style = CONFIDENCE_STYLE[cost.confidence]
    return f"[{style}]{format_usd(cost.amount)}[/{style}]"


def _output_text(result: PipelineResult) -> None:
    delta = result.cost_delta

    table = Table(
        title=f"Monthly cost changes ({result.region})",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Change", width=9)
    table.add_column("Logical ID")
    table.add_column("Type")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_column("Confidence", width=10)

    for c in sorted(delta.added_costs, key=lambda c: c.logical_id):
        table.add_row(
            "[green]added[/green]", c.logical_id, c.resource_type,
            "-", _cost_cell(c.monthly_cost), c.monthly_cost.confidence.value,
        )
    for c in sorted(delta.removed_costs, key=lambda c: c.logical_id):
        table.add_row(
            "[red]removed[/red]", c.logical_id, c.resource_type,
            _cost_cell(c.monthly_cost), "-", c.monthly_cost.confidence.value,
        )
    for m in sorted(delta.modified_costs, key=lambda m: m.logical_id):
        table.add_row(
            "[yellow]modified[/yellow]", m.logical_id, m.resource_type,
            _cost_cell(m.old_monthly_cost), _cost_cell(m.new_monthly_cost),
            m.new_monthly_cost.confidence.value,
        )

    console.print()
    if table.row_count:
        console.print(table)
    else:
        console.print("No resource changes found.")

    evaluation = result.threshold
    border = {
        ThresholdLevel.NONE: "green",
        ThresholdLevel.WARNING: "yellow",
        ThresholdLevel.ERROR: "red",
    }[evaluation.level]
    body = [
        f"[bold]Total delta:[/bold] {format_usd(delta.total_delta)}/month",
        evaluation.message,
    ]
    body.extend(f"- {r}" for r in evaluation.recommendations)
    console.print(Panel("\n".join(body), title="costdelta", border_style=border))
