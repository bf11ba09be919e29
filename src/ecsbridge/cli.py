"""Command-line interface for the Amazon ECS Bridge."""

import asyncio
import os
from pathlib import Path
from typing import Any

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .bridge.adapter import EcsBridgeAdapter
from .config import BridgeConfig, load_config
from .constants import ADAPTER_NAME
from .models.entities import EntityKind
from .models.records import Record, RecordList
from .models.request import BridgeRequest
from .observability.metrics import get_global_collector
from .utils.exceptions import BridgeError, ValidationError

app = typer.Typer(
    name="ecs-bridge",
    help="Amazon ECS Bridge - query ECS structures as tabular records",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)

STRUCTURE_OPTION = typer.Option(..., "--structure", "-s", help="Structure to query")
QUERY_OPTION = typer.Option("", "--query", "-q", help="Qualification, key=value&...")
PARAM_OPTION = typer.Option(None, "--param", "-p", help="Parameter NAME=VALUE (repeatable)")
FIELD_OPTION = typer.Option(None, "--field", "-f", help="Field to return (repeatable)")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Configuration file")
JSON_OPTION = typer.Option(False, "--json", help="Print JSON instead of a table")
LOG_LEVEL_OPTION = typer.Option(
    None, "--log-level", help="Log level (default: LOG_LEVEL or WARNING)"
)


def parse_parameters(values: list[str] | None) -> dict[str, str]:
    """Turn NAME=VALUE options into a parameter mapping."""
    parameters: dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValidationError(f"Invalid parameter '{item}': expected NAME=VALUE", field="param")
        parameters[name.strip()] = value
    return parameters


def _setup(config_file: Path | None, log_level: str | None) -> BridgeConfig:
    from .observability import configure_logging

    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        raise ValidationError(str(e), field="config") from e
    configure_logging(
        level=log_level or os.environ.get("LOG_LEVEL", "WARNING"),
        json_logs=config.logging.format == "json",
        log_file=config.logging.file,
    )
    return config


def _build_request(
    structure: str,
    query: str,
    params: list[str] | None,
    fields: list[str] | None,
    metadata: dict[str, Any] | None = None,
) -> BridgeRequest:
    return BridgeRequest(
        structure=structure,
        query=query,
        parameters=parse_parameters(params),
        fields=fields or [],
        metadata={k: v for k, v in (metadata or {}).items() if v is not None},
    )


def _run(config: BridgeConfig, operation: str, request: BridgeRequest) -> Any:
    async def execute() -> Any:
        async with EcsBridgeAdapter(config) as adapter:
            return await getattr(adapter, operation)(request)

    try:
        return asyncio.run(execute())
    finally:
        logger.info("Remote API usage", **get_global_collector().get_summary())


def _print_records(result: RecordList, as_json: bool) -> None:
    if as_json:
        payload = {"fields": result.fields, "records": result.rows(), "metadata": result.metadata}
        console.print_json(data=payload, default=str)
        return

    table = Table(title=f"{result.size} record(s)")
    for name in result.fields:
        table.add_column(name, style="cyan", overflow="fold")
    for row in result.rows():
        table.add_row(*("" if value is None else str(value) for value in row.values()))
    console.print(table)
    if result.next_page_token:
        console.print(f"[dim]Next page token:[/dim] {result.next_page_token}")


@app.command()
def search(
    structure: str = STRUCTURE_OPTION,
    query: str = QUERY_OPTION,
    param: list[str] | None = PARAM_OPTION,
    field: list[str] | None = FIELD_OPTION,
    page_size: int | None = typer.Option(None, "--page-size", min=0, help="Records per page"),
    page_token: str | None = typer.Option(None, "--page-token", help="Continue from this token"),
    order: str | None = typer.Option(None, "--order", help="e.g. clusterName:DESC,status"),
    config_file: Path | None = CONFIG_OPTION,
    as_json: bool = JSON_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """
    Search a structure.

    Examples:
        ecs-bridge search -s Clusters
        ecs-bridge search -s Tasks -q "cluster=prod&desiredStatus=RUNNING" -f taskArn -f lastStatus
        ecs-bridge search -s Tasks -q 'cluster=<%=parameter["c"]%>' -p c=prod -f "environment[DB_HOST]"
    """
    try:
        config = _setup(config_file, log_level)
        request = _build_request(
            structure,
            query,
            param,
            field,
            {"pageSize": page_size, "pageToken": page_token, "order": order},
        )
        result = _run(config, "search", request)
    except BridgeError as e:
        console.print(f"\n[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1) from e

    _print_records(result, as_json)


@app.command()
def retrieve(
    structure: str = STRUCTURE_OPTION,
    query: str = QUERY_OPTION,
    param: list[str] | None = PARAM_OPTION,
    field: list[str] | None = FIELD_OPTION,
    config_file: Path | None = CONFIG_OPTION,
    as_json: bool = JSON_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """
    Retrieve a single record.

    Examples:
        ecs-bridge retrieve -s Clusters -q "clusterArn=arn:aws:ecs:us-east-1:123:cluster/prod"
    """
    try:
        config = _setup(config_file, log_level)
        request = _build_request(structure, query, param, field)
        record: Record = _run(config, "retrieve", request)
    except BridgeError as e:
        console.print(f"\n[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1) from e

    if as_json:
        console.print_json(data=record.values, default=str)
        return
    if record.is_empty:
        console.print("[yellow]No matching record[/yellow]")
        return

    table = Table(title=f"{structure} record")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green", overflow="fold")
    for name, value in (record.values or {}).items():
        table.add_row(name, "" if value is None else str(value))
    console.print(table)


@app.command()
def count(
    structure: str = STRUCTURE_OPTION,
    query: str = QUERY_OPTION,
    param: list[str] | None = PARAM_OPTION,
    config_file: Path | None = CONFIG_OPTION,
    as_json: bool = JSON_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """
    Count the records of a structure.

    Examples:
        ecs-bridge count -s Tasks -q "cluster=prod"
    """
    try:
        config = _setup(config_file, log_level)
        request = _build_request(structure, query, param, None)
        result = _run(config, "count", request)
    except BridgeError as e:
        console.print(f"\n[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1) from e

    if as_json:
        console.print_json(data={"count": result.value})
    else:
        console.print(f"[bold]{result.value}[/bold] {structure} record(s)")


@app.command()
def structures() -> None:
    """List the structures that can be queried."""
    table = Table(title="Structures")
    table.add_column("Structure", style="cyan")
    table.add_column("Identifier field", style="green")
    table.add_column("List action")
    table.add_column("Describe action")
    for kind in EntityKind:
        table.add_row(kind.value, kind.identifier_field, kind.list_action, kind.describe_action)
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel.fit(
            f"[bold]{ADAPTER_NAME}[/bold]\n\n"
            f"Version: [cyan]{__version__}[/cyan]\n"
            "Python: 3.11+\n\n"
            "[bold]Features:[/bold]\n"
            "- Parameterized qualifications\n"
            "- Batched Describe calls (100 identifiers per call)\n"
            "- Cross-structure and nested fields\n"
            "- Client-side filtering and ordering\n"
            "- AWS Signature Version 4",
            title="About",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
