"""Typer-based CLI for locgraph location analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config, config_manager
from .cache import create_graph_cache_key, parse_graph_cache_key
from .edge_classifier import GraphEdgeClassifier
from .errors import InvalidGraphPayload
from .location_utils import location_id
from .operators import OperatorRegistry
from .type_parser import (
    extract_boundedness,
    extract_ordering,
    parse_collection_type_parameters,
    parse_location_type,
)

console = Console()

app = typer.Typer(
    help="📍 locgraph: dataflow operator location analysis.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
cache_app = typer.Typer(help="Build and inspect result cache keys.", no_args_is_help=True)
config_app = typer.Typer(help="Show or change locgraph configuration.", no_args_is_help=True)

app.add_typer(cache_app, name="cache-key")
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"locgraph v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """locgraph: resolve and inspect dataflow operator locations."""
    _configure_logging(verbose)


def _fail(message: str) -> None:
    typer.echo(typer.style(f"❌ {message}", fg=typer.colors.RED), err=True)
    raise typer.Exit(code=1)


# ===================================================================
# Type strings
# ===================================================================

@app.command("parse-type")
def parse_type(
    type_string: str = typer.Argument(..., help="Type string, e.g. \"Stream<T, Process<'a, Leader>, Bounded>\"."),
    as_json: bool = typer.Option(False, "--json", help="Print the descriptor as JSON."),
):
    """Parse the location out of a collection type string."""
    descriptor = parse_location_type(type_string)
    if descriptor is None:
        _fail(f"No location found in: {type_string}")

    info = {
        "kind": descriptor.kind.value,
        "label": descriptor.label,
        "tick_depth": descriptor.tick_depth,
        "location_kind": descriptor.location_kind,
        "location_id": location_id(descriptor),
        "canonical": descriptor.to_type_string(),
    }
    if as_json:
        typer.echo(json.dumps(info, indent=2))
        return

    table = Table(show_header=True, show_lines=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field_name, value in info.items():
        table.add_row(field_name, str(value))
    console.print(table)


@app.command("type-params")
def type_params(
    type_string: str = typer.Argument(..., help="Collection type string."),
):
    """Show the generic parameters, boundedness and ordering of a collection type."""
    params = parse_collection_type_parameters(type_string)
    if not params:
        _fail(f"Not a generic type: {type_string}")

    for index, param in enumerate(params):
        typer.echo(f"[{index}] {param}")
    typer.echo(f"boundedness: {extract_boundedness(params) or '-'}")
    typer.echo(f"ordering: {extract_ordering(params) or '-'}")


# ===================================================================
# Cache keys
# ===================================================================

@cache_app.command("create")
def cache_key_create(
    document_uri: str = typer.Argument(..., help="Document URI."),
    version: int = typer.Argument(..., min=0, help="Document version."),
    scope: str = typer.Option(config.SCOPE_FUNCTION, "--scope", "-s", help="Scope kind: function, file, workspace."),
    active_file: Optional[str] = typer.Option(None, "--path", "-p", help="Active file path."),
):
    """Print the cache key for a document version."""
    typer.echo(create_graph_cache_key(document_uri, version, scope, active_file))


@cache_app.command("parse")
def cache_key_parse(
    key: str = typer.Argument(..., help="Cache key to decode."),
):
    """Decode a cache key into its parts."""
    parts = parse_graph_cache_key(key)
    if parts is None:
        _fail(f"Invalid cache key: {key}")

    typer.echo(f"uri: {parts.document_uri}")
    typer.echo(f"version: {parts.document_version}")
    typer.echo(f"scope: {parts.scope_type}")
    typer.echo(f"path: {parts.active_file_path or '-'}")


# ===================================================================
# Edge classification
# ===================================================================

@app.command("classify")
def classify(
    graph_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Graph JSON with 'nodes' and 'edges'."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the classified graph here."),
):
    """Tag network edges in a graph JSON file."""
    try:
        payload = json.loads(graph_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        _fail(f"{graph_file} is not valid JSON: {exc}")

    classifier = GraphEdgeClassifier(OperatorRegistry(config_manager.load_operator_config()))
    try:
        result = classifier.classify_payload(payload)
    except InvalidGraphPayload as exc:
        _fail(f"Invalid graph payload: {exc}")

    summary = classifier.last_summary
    rendered = json.dumps(result, indent=2)
    if output:
        output.write_text(rendered, encoding="utf-8")
        typer.echo(
            f"Analyzed {summary.edges_examined} edges, found {summary.network_edges} network edges -> {output}"
        )
    else:
        typer.echo(rendered)


# ===================================================================
# Configuration
# ===================================================================

@config_app.command("show")
def config_show():
    """Show the effective configuration."""
    settings = config_manager.load_analysis_settings()
    operators = config_manager.load_operator_config()
    data = config_manager.settings_as_dict(settings, operators)

    console.print(f"[bold]Config file:[/bold] {config.CONFIG_FILE}")
    table = Table(title="Analysis", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in data["analysis"].items():
        table.add_row(key, str(value))
    console.print(table)

    table = Table(title="Operators", show_header=True)
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Operators")
    for key, names in data["operators"].items():
        table.add_row(key, str(len(names)), ", ".join(names))
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Analysis setting: enabled, query_timeout_ms, max_file_lines, cache_size."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist one analysis setting."""
    try:
        coerced = config_manager.coerce_analysis_value(key, value)
    except KeyError:
        raise typer.BadParameter(f"Unknown setting '{key}'.")
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid value for {key}: {exc}")

    if not config_manager.save_analysis_setting(key, coerced):
        _fail(f"Could not write {config.CONFIG_FILE}")
    typer.echo(f"analysis.{key} = {coerced}")


if __name__ == "__main__":
    app()
