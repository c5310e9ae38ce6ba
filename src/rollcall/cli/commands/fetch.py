"""Fetch upcoming events into the store."""

import asyncio

import typer

from rollcall.cli.console import ConfigOption, console, error, load_config_or_exit


def register(app: typer.Typer) -> None:
    """Register the fetch-events command."""

    @app.command("fetch-events")
    def fetch_events(config: ConfigOption = None) -> None:
        """Fetch upcoming events and store the ones that pass the filters.

        Re-running is safe: events already stored are never duplicated or
        overwritten.
        """
        from datetime import timedelta

        from rollcall.logging import configure_logging
        from rollcall.runtime import open_runtime

        configure_logging()
        config_obj = load_config_or_exit(config)
        if config_obj.api.api_key is None:
            error("api.api_key is not set (or API_KEY env var)")
            raise typer.Exit(1)

        window = timedelta(hours=config_obj.scheduler.fetch_window_hours)

        async def run():
            async with open_runtime(config_obj) as runtime:
                return await runtime.sync.sync(window)

        try:
            report = asyncio.run(run())
        except Exception as e:
            error(f"Fetch failed: {e}")
            raise typer.Exit(1) from None

        console.print(
            f"Fetched [bold]{report.fetched}[/bold] events, "
            f"{report.category_matched} matched categories, "
            f"{report.filter_matched} passed filters, "
            f"[green]{report.inserted} new[/green]"
        )
