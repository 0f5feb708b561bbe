"""contractcompat CLI - analyse proposed contract changes across services.

Commands:
    contractcompat analyze   Diff proposed snapshots and report verdicts
    contractcompat graph     Show the provider -> consumer graph
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError

from contractcompat.config import get_config
from contractcompat.engine import CompatibilityEngine
from contractcompat.errors import ContractCompatError
from contractcompat.graph import ContractGraphBuilder
from contractcompat.loader import SnapshotSetLoader
from contractcompat.logging_setup import configure_logging
from contractcompat.models import SnapshotSet
from contractcompat.types import Classification

EXIT_THRESHOLD = 1
EXIT_FATAL = 2


def _dump(data: dict, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False)
    return json.dumps(data, indent=2)


def _load_set(path: str) -> SnapshotSet:
    try:
        return SnapshotSetLoader().load(Path(path))
    except (TypeError, yaml.YAMLError, ValidationError) as e:
        click.echo(f"Error: cannot load {path}: {e}", err=True)
        sys.exit(EXIT_FATAL)


def _emit(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text)
        click.echo(f"Report written to {output}", err=True)
    else:
        click.echo(text)


@click.group()
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None)
@click.option("--log-format", type=click.Choice(["json", "text"]), default=None)
def main(log_level: Optional[str], log_format: Optional[str]):
    """Cross-service contract compatibility analysis."""
    configure_logging(level=log_level, fmt=log_format, stream=sys.stderr)


@main.command("analyze")
@click.option("--current", "-c", "current_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Current snapshot set YAML")
@click.option("--proposed", "-p", "proposed_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Proposed snapshot set YAML")
@click.option("--format", "-f", "fmt", type=click.Choice(["json", "yaml"]), default=None, help="Report format")
@click.option("--output", "-o", type=click.Path(), help="Output report file")
@click.option("--fail-on", type=click.Choice(["breaking", "unknown"]), default=None, help="Lowest verdict that fails the run")
@click.option("--workers", "-w", type=click.IntRange(min=1), default=None, help="Worker threads")
def analyze_cmd(
    current_path: str,
    proposed_path: str,
    fmt: Optional[str],
    output: Optional[str],
    fail_on: Optional[str],
    workers: Optional[int],
):
    """Analyse proposed snapshots against the current state.

    Exits 1 when a verdict reaches the --fail-on threshold, 2 when the
    inputs cannot be loaded or violate an identity invariant (e.g.
    duplicate service ids).

    Example:
        contractcompat analyze --current current.yaml --proposed next.yaml \\
            --fail-on unknown
    """
    config = get_config()
    fmt = fmt or config.output_format
    threshold = Classification(fail_on) if fail_on else config.fail_threshold

    current = _load_set(current_path)
    proposed = _load_set(proposed_path)

    engine = CompatibilityEngine(max_workers=workers)
    try:
        report = engine.analyze_sets(current, proposed)
    except ContractCompatError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)

    _emit(_dump(report.to_dict(), fmt), output)

    if report.worst.rank >= threshold.rank:
        click.echo(
            f"Verdict threshold reached: worst={report.worst.value} "
            f"(breaking={len(report.breaking_verdicts)}, unknown={len(report.unknown_verdicts)})",
            err=True,
        )
        sys.exit(EXIT_THRESHOLD)


@main.command("graph")
@click.option("--current", "-c", "current_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Snapshot set YAML")
@click.option("--format", "-f", "fmt", type=click.Choice(["json", "yaml"]), default=None, help="Output format")
def graph_cmd(current_path: str, fmt: Optional[str]):
    """Build and print the provider -> consumer contract graph."""
    fmt = fmt or get_config().output_format
    batch = _load_set(current_path)
    try:
        graph = ContractGraphBuilder().build(batch.snapshots, batch.edges, batch.failures)
    except ContractCompatError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)
    click.echo(_dump(graph.model_dump(mode="json"), fmt))


if __name__ == "__main__":
    main()
