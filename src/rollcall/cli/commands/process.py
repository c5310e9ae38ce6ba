"""One-shot processing of stored events that are due."""

import asyncio

import typer

from rollcall.cli.console import (
    ConfigOption,
    console,
    create_table,
    dim,
    error,
    load_config_or_exit,
)


def register(app: typer.Typer) -> None:
    """Register the process-schedule command."""

    @app.command("process-schedule")
    def process_schedule(config: ConfigOption = None) -> None:
        """Process every pending event whose trigger time has passed.

        Events further out are left for the service's timers.
        """
        from rollcall.logging import configure_logging
        from rollcall.runtime import open_runtime

        configure_logging()
        config_obj = load_config_or_exit(config, for_service=True)

        async def run():
            async with open_runtime(config_obj) as runtime:
                return await runtime.processor.process_due()

        try:
            results = asyncio.run(run())
        except Exception as e:
            error(f"Processing failed: {e}")
            raise typer.Exit(1) from None

        if not results:
            dim("No events due")
            return

        table = create_table(
            "Processed Events",
            [
                ("Event", "cyan"),
                ("Attendees", {"justify": "right"}),
                ("Delivered", ""),
                ("Result", ""),
            ],
        )
        for result in results:
            if result.expired:
                outcome = "[yellow]expired[/yellow]"
            elif result.ok:
                outcome = "[green]ok[/green]"
            else:
                outcome = f"[red]{result.error}[/red]"
            table.add_row(
                result.event_id,
                str(result.attendee_count),
                "yes" if result.delivered else "no",
                outcome,
            )
        console.print(table)
