"""Main CLI application."""

import typer

from rollcall.cli.commands import (
    breakers,
    config,
    dead_letters,
    events,
    fetch,
    process,
    service,
)

app = typer.Typer(
    name="rollcall",
    help="Rollcall - print attendee lists just before events start",
    no_args_is_help=True,
)

for module in (fetch, process, service, events, breakers, dead_letters, config):
    module.register(app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
