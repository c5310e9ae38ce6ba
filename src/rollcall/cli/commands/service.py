"""Long-running scheduling service."""

import asyncio
import signal

import typer

from rollcall.cli.console import ConfigOption, console, load_config_or_exit


async def _run_service(config) -> None:
    from rollcall.runtime import open_runtime

    async with open_runtime(config) as runtime:
        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_requested.set)

        await runtime.service.start()
        console.print(
            "[bold green]Scheduling service running[/bold green] "
            "[dim](Ctrl+C to stop)[/dim]"
        )
        await stop_requested.wait()
        console.print("\n[bold yellow]Stopping, waiting for running jobs...[/bold yellow]")
        await runtime.service.stop()


def register(app: typer.Typer) -> None:
    """Register the start-service command."""

    @app.command("start-service")
    def start_service(config: ConfigOption = None) -> None:
        """Run sync/schedule cycles until interrupted."""
        from rollcall.logging import configure_logging

        configure_logging(use_rich=True, log_to_file=True)
        config_obj = load_config_or_exit(config, for_service=True)

        try:
            asyncio.run(_run_service(config_obj))
        except KeyboardInterrupt:
            console.print("\n[bold yellow]Service stopped[/bold yellow]")
