"""Configuration management commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from rollcall.cli.console import console, error, load_config_or_exit, success, warning


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: search ./, $ROLLCALL_HOME, /etc/rollcall)",
            ),
        ] = None,
    ) -> None:
        """Manage configuration."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from rich.table import Table

        from rollcall.config import ConfigError

        if action == "show":
            config_obj = load_config_or_exit(path)
            console.print_json(config_obj.model_dump_json())

        elif action == "validate":
            config_obj = load_config_or_exit(path)

            table = Table(title="Configuration Summary")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")

            table.add_row("API", config_obj.api.base_url)
            table.add_row(
                "API key",
                "configured" if config_obj.api.api_key else "[yellow]missing[/yellow]",
            )
            table.add_row("Database", str(config_obj.database_path))
            table.add_row(
                "Window / lead",
                f"{config_obj.scheduler.fetch_window_hours:g}h / "
                f"{config_obj.scheduler.lead_minutes:g}m",
            )
            table.add_row("Delivery", config_obj.delivery.mode)
            table.add_row(
                "Categories",
                ", ".join(config_obj.filters.allowed_categories) or "[dim]all[/dim]",
            )
            table.add_row(
                "Webhook",
                "enabled" if config_obj.webhook.enabled else "[dim]disabled[/dim]",
            )
            table.add_row("Dead letters", str(config_obj.dead_letter.path))

            try:
                config_obj.validate_for_service()
            except ConfigError as e:
                console.print(table)
                warning(f"Valid, but not ready to run the service: {e}")
                raise typer.Exit(1) from None

            success("Configuration is valid!")
            console.print()
            console.print(table)

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate")
            raise typer.Exit(1)
