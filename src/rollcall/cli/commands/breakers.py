"""Circuit breaker settings and live state."""

import typer

from rollcall.cli.console import (
    ConfigOption,
    console,
    create_table,
    dim,
    load_config_or_exit,
    warning,
)

_STATE_STYLES = {"closed": "green", "half_open": "yellow", "open": "red"}


def register(app: typer.Typer) -> None:
    """Register the breakers command."""

    @app.command()
    def breakers(config: ConfigOption = None) -> None:
        """Show circuit breakers.

        State and call statistics come from the snapshot the running service
        writes after every cycle; without one, breakers are shown as a fresh
        process would start them.
        """
        from rollcall.health import read_health
        from rollcall.resilience import Resilience

        config_obj = load_config_or_exit(config)
        resilience = Resilience.from_config(config_obj)
        snapshot = read_health(config_obj.health.path)
        live = snapshot.get("breakers", {}) if snapshot else {}

        table = create_table(
            "Circuit Breakers",
            [
                ("Dependency", "cyan"),
                ("State", ""),
                ("Calls", {"justify": "right"}),
                ("Failed", {"justify": "right"}),
                ("Rejected", {"justify": "right"}),
                ("Failures to open", {"justify": "right"}),
                ("Cooldown", {"justify": "right"}),
            ],
        )
        for name, fresh in resilience.stats().items():
            stats = live.get(name) or fresh
            breaker = resilience.breaker(name)
            state = stats.get("state", "closed")
            style = _STATE_STYLES.get(state, "")
            table.add_row(
                name,
                f"[{style}]{state}[/{style}]" if style else state,
                str(stats.get("total_calls", 0)),
                str(stats.get("failed_calls", 0)),
                str(stats.get("rejected_calls", 0)),
                str(breaker.failure_threshold),
                f"{breaker.reset_timeout:g}s",
            )
        console.print(table)

        if snapshot is None:
            warning(
                f"No health snapshot at {config_obj.health.path}; "
                "is the service running?"
            )
        else:
            events = snapshot.get("events") or {}
            console.print(
                f"Service {snapshot.get('status', 'unknown')} as of "
                f"{snapshot.get('updated_at', '?')}: "
                f"{events.get('pending', 0)} pending, "
                f"{events.get('processed', 0)} processed, "
                f"{snapshot.get('armed_timers', 0)} timers armed"
            )
        dim(
            f"Retries: {resilience.retry.max_attempts} attempts, "
            f"{resilience.retry.base_delay:g}s base delay"
        )
