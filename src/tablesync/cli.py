"""
Command-line interface for tablesync.
"""

import asyncio
import logging
import sys
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config import (
    CatalogConfig,
    DatabaseConnection,
    LoggingConfig,
    SourceConfig,
    TableSyncConfig,
    TargetConfig,
)
from .exceptions import ConfigurationError, TableSyncError
from .schema.models import UnifiedSchema
from .schema.reconciler import PlanAction, ReconciliationPlan


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TableSyncError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _configure_logging(config: LoggingConfig, debug: bool = False) -> None:
    """Route log records to the console and, if configured, a rotating file."""
    handlers = [RichHandler(console=Console(stderr=True), show_path=False)]

    if config.file:
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if debug else config.level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def _load_config(path: str, debug: bool) -> TableSyncConfig:
    config = TableSyncConfig.from_yaml(path)
    config.validate_config()
    _configure_logging(config.logging, debug or config.debug)
    return config


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """tablesync: schema reconciliation for multi-source table sync."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="tablesync-config.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new tablesync configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    config = _create_default_config()

    config.to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the source patterns, target table and connection details")
    console.print(f"2. Run: tablesync validate-config --config {output}")
    console.print(f"3. Run: tablesync plan --config {output}")
    console.print(f"4. Run: tablesync sync --config {output}")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        tablesync_config = TableSyncConfig.from_yaml(config)
        tablesync_config.validate_config()

        console.print("[green]✓[/green] Configuration is valid")

        _display_config_summary(tablesync_config)

    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.pass_context
@handle_errors
def discover(ctx, config: str):
    """Discover source tables and show their unified schema."""
    tablesync_config = _load_config(config, ctx.obj.get("debug", False))

    from .sync import SyncTableJob

    async def run_discovery():
        job = SyncTableJob(tablesync_config)
        try:
            sources = await job.discover()
            return sources, job.reconciler.merge(sources)
        finally:
            await job.close()

    sources, unified = asyncio.run(run_discovery())

    console.print(f"[blue]Discovered {len(sources)} source table(s)[/blue]")
    for source in sources:
        _display_columns(source.origin, source.columns, source.primary_key)
    _display_unified(unified)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.pass_context
@handle_errors
def plan(ctx, config: str):
    """Show what sync would do to the target table."""
    tablesync_config = _load_config(config, ctx.obj.get("debug", False))

    from .sync import SyncTableJob

    async def run_plan():
        job = SyncTableJob(tablesync_config)
        try:
            return await job.plan()
        finally:
            await job.close()

    result = asyncio.run(run_plan())
    _display_plan(tablesync_config, result)

    if result.action == PlanAction.INCOMPATIBLE:
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--channel",
    default=None,
    help="PostgreSQL NOTIFY channel to listen on (overrides config)",
)
@click.pass_context
@handle_errors
def sync(ctx, config: str, channel: Optional[str]):
    """Prepare the target table and follow source schema changes."""
    tablesync_config = _load_config(config, ctx.obj.get("debug", False))

    console.print("[blue]Starting tablesync...[/blue]")
    console.print(f"Config: {config}")
    console.print(f"Target: {tablesync_config.target.identifier}")
    console.print(f"Channel: {channel or tablesync_config.listener.channel}")

    from .sync import SyncTableJob

    async def run_sync():
        job = SyncTableJob(tablesync_config)
        try:
            await job.run(channel)
        finally:
            await job.close()

    try:
        asyncio.run(run_sync())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")


def _create_default_config() -> TableSyncConfig:
    """Create a default configuration with examples."""
    connection = DatabaseConnection(
        host="${POSTGRES_HOST}",
        port=5432,
        database="postgres",
        user="${POSTGRES_USER}",
        password="${POSTGRES_PASSWORD}",
    )

    return TableSyncConfig(
        source=SourceConfig(
            connection=connection,
            database_pattern="shop_[0-9]+",
            table_pattern="orders_[0-9]+",
        ),
        target=TargetConfig(
            database="warehouse",
            table="orders",
            primary_keys=["id"],
        ),
        catalog=CatalogConfig(connection=connection),
    )


def _display_config_summary(config: TableSyncConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    summary = Table(title="Sync")
    summary.add_column("Setting", style="cyan")
    summary.add_column("Value", style="green")

    source = config.source
    summary.add_row("Source server", f"{source.connection.host}:{source.connection.port}")
    summary.add_row("Database pattern", source.database_pattern)
    summary.add_row("Table pattern", source.table_pattern)
    summary.add_row("Match strategy", source.match_strategy)
    summary.add_row("Target table", config.target.identifier.full_name)
    summary.add_row("Primary keys", ", ".join(config.target.primary_keys) or "(inferred)")
    summary.add_row("Partition keys", ", ".join(config.target.partition_keys) or "-")
    summary.add_row("Catalog schema", config.catalog.schema_name)
    summary.add_row(
        "Listener",
        config.listener.channel if config.listener.enabled else "disabled",
    )

    console.print(summary)


def _display_columns(title, columns, primary_key) -> None:
    table = Table(title=title)
    table.add_column("Column", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Key", style="yellow")

    for name, column_type in columns.items():
        table.add_row(name, str(column_type), "PK" if name in primary_key else "")

    console.print(table)


def _display_unified(unified: UnifiedSchema) -> None:
    table = Table(title="Unified schema")
    table.add_column("Column", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("From", style="magenta")
    table.add_column("Key", style="yellow")

    for name, column_type in unified.columns.items():
        table.add_row(
            name,
            str(column_type),
            unified.origins.get(name, ""),
            "PK" if name in unified.primary_key else "",
        )

    console.print(table)
    if not unified.has_primary_key:
        console.print("[yellow]Sources do not agree on a primary key[/yellow]")


def _display_plan(config: TableSyncConfig, result: ReconciliationPlan) -> None:
    identifier = config.target.identifier
    console.print(f"[blue]Plan for {identifier}[/blue] ({len(result.sources)} source table(s))")

    if result.action == PlanAction.CREATE:
        console.print("[green]✓[/green] Target table will be created")
        _display_columns(
            "Target schema", result.draft.columns, result.draft.primary_key
        )
        if result.draft.partition_keys:
            console.print(f"Partition keys: {', '.join(result.draft.partition_keys)}")
    elif result.action == PlanAction.COMPATIBLE:
        console.print(
            f"[green]✓[/green] Existing target (version {result.existing.version}) "
            f"is compatible with the sources"
        )
    else:
        console.print("[red]✗[/red] Existing target is incompatible with the sources:")
        for reason in result.reasons:
            console.print(f"  • {reason}")


if __name__ == "__main__":
    main()
