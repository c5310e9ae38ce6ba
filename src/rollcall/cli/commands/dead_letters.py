"""Inspect the dead-letter log."""

from typing import Annotated

import typer

from rollcall.cli.console import (
    ConfigOption,
    console,
    create_table,
    dim,
    load_config_or_exit,
    warning,
)


def register(app: typer.Typer) -> None:
    """Register the dead-letters command."""

    @app.command("dead-letters")
    def dead_letters(
        config: ConfigOption = None,
        type_: Annotated[
            str | None,
            typer.Option("--type", "-t", help="Only entries of this type"),
        ] = None,
        limit: Annotated[
            int,
            typer.Option("--limit", "-n", help="Show the most recent N entries"),
        ] = 20,
    ) -> None:
        """Show failed and expired events."""
        from rollcall.dead_letter import DeadLetterLog

        config_obj = load_config_or_exit(config)
        log = DeadLetterLog(
            config_obj.dead_letter.path, max_entries=config_obj.dead_letter.max_entries
        )

        entries = log.entries(type=type_, limit=limit)
        if not entries:
            warning("No dead-letter entries")
            return

        table = create_table(
            "Dead Letters",
            [
                ("ID", "dim"),
                ("Time", ""),
                ("Type", "cyan"),
                ("Event", ""),
                ("Error", "red"),
            ],
        )
        for entry in reversed(entries):
            event = entry.payload.get("event") or {}
            table.add_row(
                entry.id,
                entry.timestamp[:19],
                entry.type,
                f"{event.get('id', '?')} {event.get('name', '')}".strip(),
                entry.error_message,
            )
        console.print(table)

        stats = log.stats()
        by_type = ", ".join(f"{k}: {v}" for k, v in sorted(stats["by_type"].items()))
        dim(f"{stats['total']} total ({by_type})")
