"""Inspect stored events and preview attendee lists."""

import asyncio
from datetime import UTC, datetime
from typing import Annotated

import typer

from rollcall.cli.console import (
    ConfigOption,
    console,
    create_table,
    dim,
    error,
    load_config_or_exit,
    warning,
)
from rollcall.events.types import EventStatus


def _format_countdown(start: datetime) -> str:
    """Format a countdown string for an event start."""
    now = datetime.now(UTC)
    if start <= now:
        return "[dim]started[/dim]"

    total_minutes = int((start - now).total_seconds()) // 60
    if total_minutes < 60:
        return f"in {total_minutes}m"

    hours, minutes = divmod(total_minutes, 60)
    if hours < 24:
        return f"in {hours}h {minutes}m" if minutes else f"in {hours}h"

    days, hours = divmod(hours, 24)
    return f"in {days}d {hours}h" if hours else f"in {days}d"


def register(app: typer.Typer) -> None:
    """Register the list-events and preview-event commands."""

    @app.command("list-events")
    def list_events(
        config: ConfigOption = None,
        status: Annotated[
            EventStatus | None,
            typer.Option(
                "--status",
                "-s",
                help="Only show events with this status",
            ),
        ] = None,
        limit: Annotated[
            int | None,
            typer.Option("--limit", "-n", help="Maximum number of events"),
        ] = None,
    ) -> None:
        """List stored events."""
        from rollcall.db import Database
        from rollcall.events import EventStore

        config_obj = load_config_or_exit(config)

        async def run():
            database = Database(database_path=config_obj.database_path)
            await database.connect()
            try:
                await database.create_all()
                store = EventStore(database)
                return (
                    await store.list_events(status=status, limit=limit),
                    await store.count_by_status(),
                )
            finally:
                await database.disconnect()

        events, counts = asyncio.run(run())
        if not events:
            warning("No events found")
            return

        table = create_table(
            "Events",
            [
                ("ID", "cyan"),
                ("Name", ""),
                ("Start (UTC)", ""),
                ("When", ""),
                ("Status", ""),
            ],
        )
        for event in events:
            status_text = (
                "[yellow]pending[/yellow]"
                if event.is_pending
                else "[green]processed[/green]"
            )
            table.add_row(
                event.id,
                event.name,
                event.start_date.strftime("%Y-%m-%d %H:%M"),
                _format_countdown(event.start_date),
                status_text,
            )
        console.print(table)
        dim(
            f"{counts[EventStatus.PENDING]} pending, "
            f"{counts[EventStatus.PROCESSED]} processed"
        )

    @app.command("preview-event")
    def preview_event(
        event_id: Annotated[str, typer.Argument(help="Upstream event ID")],
        config: ConfigOption = None,
    ) -> None:
        """Show the attendee list for an event without printing anything."""
        from rollcall.logging import configure_logging
        from rollcall.runtime import open_runtime

        configure_logging()
        config_obj = load_config_or_exit(config)
        if config_obj.api.api_key is None:
            error("api.api_key is not set (or API_KEY env var)")
            raise typer.Exit(1)

        async def run():
            async with open_runtime(config_obj) as runtime:
                detail = await runtime.client.get_event(event_id)
                attendees = await runtime.fetcher.fetch_all(event_id)
                return detail, attendees

        try:
            detail, attendees = asyncio.run(run())
        except Exception as e:
            error(f"Preview failed: {e}")
            raise typer.Exit(1) from None

        table = create_table(
            f"{detail.get('name', event_id)} ({len(attendees)} attendees)",
            [("Last name", "cyan"), ("First name", ""), ("Email", "dim")],
        )
        for attendee in attendees:
            table.add_row(attendee.last_name, attendee.first_name, attendee.email or "")
        console.print(table)
