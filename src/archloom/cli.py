"""archloom CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from archloom import __version__


@click.group()
@click.version_option(version=__version__, prog_name="archloom")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """archloom - architecture conformance checks."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
_rules_option = click.option(
    "--rules",
    "rules_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rules file (default: from archloom.yml or 'rules.yml').",
)


@main.command()
@click.option(
    "--graph",
    "graph_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Fact graph file (default: from archloom.yml or 'facts.yml').",
)
@_rules_option
@click.option(
    "--baseline",
    "baseline_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Baseline store location (overrides archloom.yml).",
)
@click.option("--refreeze", is_flag=True, default=False, help="Rewrite baselines of freezing rules.")
@click.option("--strict", is_flag=True, default=False, help="Ignore baselines entirely.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich on a TTY, porcelain otherwise).",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Parallel rule workers.")
@_project_option
def check(
    *,
    graph_path: Path | None,
    rules_path: Path | None,
    baseline_dir: Path | None,
    refreeze: bool,
    strict: bool,
    fmt: str | None,
    workers: int | None,
    project: Path | None,
) -> None:
    """Evaluate architecture rules against a fact graph.

    Exit codes: 0 = every rule passed, 1 = a rule failed or errored,
    2 = configuration error.
    """
    from dataclasses import replace

    from archloom.config import build_store, load_settings
    from archloom.errors import BaselineStoreError, ConfigurationError
    from archloom.freeze import Freezer
    from archloom.graph import load_graph
    from archloom.report import check as run_check
    from archloom.report import format_json, format_porcelain, format_rich
    from archloom.rules import load_rules_with_excludes, or_
    from archloom.rules.predicates import resides_in_package

    project_root = project or Path.cwd()
    settings = load_settings(project_root)

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    try:
        rules, exclude = load_rules_with_excludes(rules_path or project_root / settings.rules)
        graph = load_graph(graph_path or project_root / settings.graph)
    except (ConfigurationError, OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if exclude:
        graph = graph.excluding(or_(*(resides_in_package(pattern) for pattern in exclude)))

    freeze_settings = settings.freeze
    if baseline_dir is not None:
        freeze_settings = replace(freeze_settings, store=str(baseline_dir))
    store = None if strict else build_store(freeze_settings, project_root)

    freezer = None
    if store is not None:
        try:
            store.open()
        except BaselineStoreError as exc:
            # Rules that need the store report the failure individually.
            click.echo(f"Warning: {exc}", err=True)
        freezer = Freezer(
            store,
            allow_store_creation=freeze_settings.allow_store_creation,
            refreeze=refreeze or freeze_settings.refreeze,
        )

    try:
        report = run_check(graph, rules, freezer=freezer, max_workers=workers or settings.workers)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    finally:
        if store is not None:
            store.close()

    formatters = {
        "rich": format_rich,
        "json": format_json,
        "porcelain": format_porcelain,
    }
    output = formatters[fmt](report)
    if output:
        click.echo(output)

    sys.exit(report.exit_code)


@main.command("rules")
@_rules_option
@_project_option
def list_rules(*, rules_path: Path | None, project: Path | None) -> None:
    """List the rules defined in the rules file."""
    from rich.console import Console
    from rich.table import Table

    from archloom.config import load_settings
    from archloom.errors import ConfigurationError
    from archloom.rules import load_rules

    project_root = project or Path.cwd()
    settings = load_settings(project_root)

    try:
        rules = load_rules(rules_path or project_root / settings.rules)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    table = Table(title=f"{len(rules)} rules")
    table.add_column("Rule", style="bold", no_wrap=True)
    table.add_column("Scope")
    table.add_column("Condition")
    table.add_column("Frozen")
    table.add_column("Description")
    for rule in rules:
        table.add_row(
            rule.name,
            rule.scope.value,
            rule.condition_kind.value,
            "yes" if rule.freeze else "",
            rule.description,
        )

    Console().print(table)
