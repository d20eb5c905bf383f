#!/usr/bin/env python3
"""
Command-line interface for Paranoia Toolkit.

Provides inspection, restore, purge and reporting tools for soft-deleted
records. Models are given as ``package.module:ClassName``.
"""

import importlib
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Optional, Tuple, Type

import click
import pandas as pd  # type: ignore[import-untyped]
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session

from . import __version__
from .config import get_config
from .soft_delete import ParanoiaService, current_time, is_paranoid

console = Console()


def load_model(path: str) -> Type[Any]:
    """Import a paranoid model given as ``package.module:ClassName``."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise click.BadParameter(
            f"Expected 'package.module:ClassName', got '{path}'", param_hint="MODEL"
        )

    module = importlib.import_module(module_name)
    model = getattr(module, class_name, None)
    if model is None:
        raise click.BadParameter(
            f"{module_name} has no attribute {class_name}", param_hint="MODEL"
        )
    if not is_paranoid(model):
        raise click.BadParameter(f"{path} is not a paranoid model", param_hint="MODEL")
    return model


def coerce_ids(model: Type[Any], ids: Tuple[str, ...]) -> List[Any]:
    """Convert command line ids to the model's primary key type."""
    pk = inspect(model).primary_key[0]
    try:
        python_type = pk.type.python_type
    except NotImplementedError:
        return list(ids)
    return [python_type(value) for value in ids]


def open_session(ctx: click.Context) -> Session:
    """Open a session on the database selected for this invocation."""
    database_url = ctx.obj.get("database_url") or get_config().database_url
    if not database_url:
        raise click.UsageError(
            "No database configured. Use --database-url or PARANOIA_DATABASE_URL."
        )
    return Session(create_engine(database_url))


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--database-url", help="Database connection string")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    """Paranoia Toolkit - Soft delete tools for SQLAlchemy applications."""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url
    logging.basicConfig(level=get_config().log_level.value)

    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Paranoia Toolkit[/bold blue] v{__version__}\n"
                "[dim]Soft delete tools for SQLAlchemy applications[/dim]\n\n"
                "Use [bold]paranoia --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Manage toolkit configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
def config_show(format: str) -> None:
    """Display current configuration."""
    try:
        config = get_config()
        config_dict = config.to_dict()

        if format == "json":
            console.print_json(data=config_dict)
        elif format == "yaml":
            import yaml  # type: ignore[import-untyped]

            console.print(yaml.dump(config_dict, default_flow_style=False))
        else:
            table = Table(title="Paranoia Configuration", show_header=True)
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")

            categories = {
                "General": ["application_name", "environment", "timezone"],
                "Lifecycle": ["timestamp_columns", "default_recovery_window_hours"],
                "Command Line": ["database_url", "log_level"],
            }

            for category, settings in categories.items():
                table.add_row(f"[bold]{category}[/bold]", "")
                for setting in settings:
                    value = config_dict.get(setting)
                    if value is None:
                        value = "[dim]Not configured[/dim]"
                    elif isinstance(value, list):
                        value = ", ".join(value)
                    table.add_row(f"  {setting}", str(value))

            console.print(table)

    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)


@config.command("validate")
def config_validate() -> None:
    """Validate current configuration."""
    try:
        config = get_config()

        issues = []
        warnings = []

        if not config.timestamp_columns:
            warnings.append("No timestamp columns are touched on delete or restore")

        if not config.database_url:
            warnings.append("No database URL configured for the command line")

        if config.environment == "production" and config.log_level.value == "DEBUG":
            warnings.append("Debug logging is not recommended in production")

        if (
            config.default_recovery_window_hours is not None
            and config.default_recovery_window_hours > 24 * 365
        ):
            issues.append("Default recovery window must not exceed one year")

        if issues:
            console.print("[red]✗ Configuration validation failed:[/red]")
            for issue in issues:
                console.print(f"  [red]• {issue}[/red]")
            sys.exit(1)
        else:
            console.print("[green]✓ Configuration is valid[/green]")

        if warnings:
            console.print("\n[yellow]⚠ Warnings:[/yellow]")
            for warning in warnings:
                console.print(f"  [yellow]• {warning}[/yellow]")

    except Exception as e:
        console.print(f"[red]Error validating configuration: {e}[/red]")
        sys.exit(1)


@cli.group()
def deleted() -> None:
    """Inspect soft-deleted records."""
    pass


@deleted.command("list")
@click.argument("model_path", metavar="MODEL")
@click.option("--limit", type=int, default=100, help="Maximum results to return")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def deleted_list(ctx: click.Context, model_path: str, limit: int, format: str) -> None:
    """List soft-deleted records of MODEL, newest first."""
    try:
        model = load_model(model_path)
        with open_session(ctx) as session:
            records = ParanoiaService(session).deleted_records(model, limit=limit)
            data = [record.to_dict() for record in records]

        if not data:
            console.print(f"[yellow]No deleted {model.__name__} records[/yellow]")
            return

        if format == "json":
            console.print_json(data=data)
        else:
            table = Table(title=f"Deleted {model.__name__} records ({len(data)})")
            for column in data[0]:
                table.add_column(column, style="cyan" if column == "id" else None)
            for row in data:
                table.add_row(*[str(value) for value in row.values()])
            console.print(table)

    except click.UsageError:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@deleted.command("export")
@click.argument("model_path", metavar="MODEL")
@click.option("--output", type=click.Path(), required=True, help="Output file path")
@click.option("--format", type=click.Choice(["csv", "json", "excel"]), default="csv")
@click.option("--limit", type=int, default=10000, help="Maximum records to export")
@click.pass_context
def deleted_export(
    ctx: click.Context, model_path: str, output: str, format: str, limit: int
) -> None:
    """Export soft-deleted records of MODEL."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Exporting deleted records...", total=None)

        try:
            model = load_model(model_path)
            with open_session(ctx) as session:
                records = ParanoiaService(session).deleted_records(model, limit=limit)
                data = [record.to_dict() for record in records]

            progress.update(
                task, description=f"Found {len(data)} records, exporting..."
            )

            df = pd.DataFrame(data)

            output_path = Path(output)
            if format == "json":
                df.to_json(output_path, orient="records", date_format="iso", indent=2)
            elif format == "excel":
                df.to_excel(output_path, index=False, engine="openpyxl")
            else:  # csv
                df.to_csv(output_path, index=False)

            progress.stop()
            console.print(
                f"[green]✓ Exported {len(data)} {model.__name__} records to "
                f"{output_path}[/green]"
            )

        except click.UsageError:
            raise
        except Exception as e:
            progress.stop()
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)


@cli.command()
@click.argument("model_path", metavar="MODEL")
@click.argument("ids", nargs=-1, required=True)
@click.option("--recursive", is_flag=True, help="Also restore dependent records")
@click.option(
    "--window-hours",
    type=click.IntRange(min=0),
    default=None,
    help="Only restore deletions within this many hours of their deletion time",
)
@click.pass_context
def restore(
    ctx: click.Context,
    model_path: str,
    ids: Tuple[str, ...],
    recursive: bool,
    window_hours: Optional[int],
) -> None:
    """Restore soft-deleted records of MODEL by id."""
    try:
        model = load_model(model_path)
        if window_hours is None:
            window_hours = get_config().default_recovery_window_hours

        options: dict = {"recursive": recursive}
        if window_hours is not None:
            options["recovery_window"] = timedelta(hours=window_hours)

        with open_session(ctx) as session:
            records = ParanoiaService(session).restore(
                model, coerce_ids(model, ids), **options
            )
            for record in records:
                if record.is_deleted:
                    console.print(
                        f"[yellow]⚠ {model.__name__} {record._entity_id()} left "
                        "deleted (outside recovery window)[/yellow]"
                    )
                else:
                    console.print(
                        f"[green]✓ Restored {model.__name__} "
                        f"{record._entity_id()}[/green]"
                    )

    except click.UsageError:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("model_path", metavar="MODEL")
@click.argument("ids", nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def purge(ctx: click.Context, model_path: str, ids: Tuple[str, ...], yes: bool) -> None:
    """Permanently remove records of MODEL and their dependents."""
    try:
        model = load_model(model_path)
        if not yes:
            click.confirm(
                f"Permanently remove {len(ids)} {model.__name__} record(s)?",
                abort=True,
            )

        with open_session(ctx) as session:
            purged = ParanoiaService(session).purge(model, coerce_ids(model, ids))

        console.print(f"[green]✓ Purged {purged} {model.__name__} record(s)[/green]")

    except (click.UsageError, click.Abort):
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("model_paths", metavar="MODEL...", nargs=-1, required=True)
@click.option("--days", type=int, default=30, help="Number of days to analyze")
@click.pass_context
def report(ctx: click.Context, model_paths: Tuple[str, ...], days: int) -> None:
    """Summarise soft deletions of each MODEL over the last days."""
    try:
        models = [load_model(path) for path in model_paths]
        end_date = current_time()
        start_date = end_date - timedelta(days=days)

        with open_session(ctx) as session:
            deletion_report = ParanoiaService(session).deletion_report(
                models, start_date, end_date
            )

        console.print(
            Panel.fit(
                f"[bold]Deletion Report[/bold] (last {days} days)\n\n"
                f"Deleted in period: {deletion_report.total_deleted}\n"
                f"Currently active: {deletion_report.total_active}",
                border_style="blue",
            )
        )

        table = Table(title="Deletions by Model")
        table.add_column("Model", style="cyan")
        table.add_column("Deleted", style="yellow", justify="right")
        for name, count in sorted(deletion_report.by_type.items()):
            table.add_row(name, str(count))
        console.print(table)

    except click.UsageError:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
