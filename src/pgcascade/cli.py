"""
Command-line interface for pgcascade.
"""

import asyncio
import logging
import logging.handlers
import sys
from contextlib import asynccontextmanager
from functools import wraps
from pathlib import Path
from typing import AsyncIterator, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .adapter import PostgresAdapter
from .config import LoggingConfig, PgCascadeConfig
from .database.connection import Connection, ConnectionPool
from .exceptions import ConfigurationError, PgCascadeError


console = Console()


class ConsoleNotifier:
    """Prints reapplication outcomes as indented sub-items."""

    def say(self, message: str) -> None:
        console.print(f"   -> {message}")


def setup_logging(config: LoggingConfig, debug: bool = False) -> None:
    """Configure the root logger from the logging section of the config."""
    level = logging.DEBUG if debug else getattr(logging, config.level)
    formatter = logging.Formatter(config.format)

    handlers = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.max_size,
                backupCount=config.backup_count,
            )
        )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PgCascadeError as e:
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


@asynccontextmanager
async def _session(config: PgCascadeConfig) -> AsyncIterator[Connection]:
    """One connection inside one transaction, committed on success."""
    pool = ConnectionPool(config.database.to_connection_config())
    await pool.initialize()
    try:
        async with pool.transaction() as connection:
            yield connection
    finally:
        await pool.close()


def _load_config(config: str) -> PgCascadeConfig:
    pgcascade_config = PgCascadeConfig.from_yaml(config)
    debug = bool(click.get_current_context().find_root().obj.get("debug"))
    setup_logging(pgcascade_config.logging, debug)
    return pgcascade_config


def _adapter(connection: Connection, config: PgCascadeConfig) -> PostgresAdapter:
    notifier = ConsoleNotifier() if config.reapplication.notify else None
    return PostgresAdapter(connection, notifier=notifier)


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """pgcascade: cascade-safe view management for PostgreSQL."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@config_option
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        pgcascade_config = PgCascadeConfig.from_yaml(config)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    database = pgcascade_config.database
    console.print(f"  Database: {database.database} on {database.host}:{database.port}")
    console.print(f"  DSN: {database.to_dsn(mask_password=True)}")
    console.print(f"  Search path: {database.search_path or '(server default)'}")


@main.command()
@config_option
@handle_errors
def views(config: str):
    """List views and materialized views on the search path."""
    pgcascade_config = _load_config(config)

    async def run_list():
        async with _session(pgcascade_config) as connection:
            return await _adapter(connection, pgcascade_config).list_views()

    found = asyncio.run(run_list())

    table = Table(title="Views")
    table.add_column("Name", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Namespace", style="green")

    for view in found:
        table.add_row(
            view.name,
            "materialized" if view.materialized else "view",
            view.namespace,
        )

    console.print(table)


@main.command()
@config_option
@click.argument("names", nargs=-1, required=True)
@handle_errors
def order(config: str, names: Tuple[str, ...]):
    """Show the order in which NAMES can be safely recreated."""
    pgcascade_config = _load_config(config)

    async def run_order():
        async with _session(pgcascade_config) as connection:
            return await _adapter(connection, pgcascade_config).recreation_order(list(names))

    ordered = asyncio.run(run_order())

    if not ordered:
        console.print("[yellow]None of the given views were found[/yellow]")
        return

    for position, name in enumerate(ordered, start=1):
        console.print(f"{position}. {name}")


@main.command()
@config_option
@click.argument("name")
@click.option(
    "--definition-file",
    "-f",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="File holding the new SELECT statement",
)
@click.option("--materialized", is_flag=True, help="NAME is a materialized view")
@click.option(
    "--cascade",
    is_flag=True,
    help="Drop dependent views and recreate them with their indexes and triggers",
)
@handle_errors
def update_view(
    config: str,
    name: str,
    definition_file: str,
    materialized: bool,
    cascade: bool,
):
    """Drop and recreate view NAME with a new definition."""
    pgcascade_config = _load_config(config)
    definition = Path(definition_file).read_text(encoding="utf-8").strip().rstrip(";")

    kind = "materialized view" if materialized else "view"
    console.print(f"[blue]Updating {kind} {name}[/blue]")

    async def run_update():
        async with _session(pgcascade_config) as connection:
            adapter = _adapter(connection, pgcascade_config)
            if materialized:
                await adapter.update_materialized_view(name, definition, cascade=cascade)
            else:
                await adapter.update_view(name, definition, cascade=cascade)

    asyncio.run(run_update())
    console.print(f"[green]✓[/green] Updated {kind} {name}")


@main.command()
@config_option
@click.argument("name")
@click.option(
    "--concurrently",
    is_flag=True,
    help="Refresh without locking out readers",
)
@click.option(
    "--cascade",
    is_flag=True,
    help="Also refresh materialized views built on NAME",
)
@handle_errors
def refresh(config: str, name: str, concurrently: bool, cascade: bool):
    """Refresh materialized view NAME."""
    pgcascade_config = _load_config(config)

    async def run_refresh():
        async with _session(pgcascade_config) as connection:
            return await _adapter(connection, pgcascade_config).refresh_materialized_view(
                name, concurrently=concurrently, cascade=cascade
            )

    refreshed = asyncio.run(run_refresh())
    for view_name in refreshed:
        console.print(f"[green]✓[/green] Refreshed {view_name}")


if __name__ == "__main__":
    main()
