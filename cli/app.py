from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_health,
    render_ingest,
    render_latest,
    render_readings,
    render_stats,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the glucose telemetry service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Request timeout in seconds.",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="Bearer token for protected routes (defaults to API_TOKEN env).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout, token=token)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("ingest")
def ingest_command(
    ctx: typer.Context,
    value: float = typer.Argument(..., help="Glucose value in mg/dL."),
    timestamp: Optional[str] = typer.Option(None, "--timestamp", help="ISO 8601 reading time."),
    trend: Optional[str] = typer.Option(None, "--trend", help="Rising, Falling, Stable or Unknown."),
    noise: Optional[str] = typer.Option(None, "--noise", help="Clean, Light, Medium or Heavy."),
    device: Optional[str] = typer.Option(None, "--device", help="Source device label."),
    owner_id: Optional[str] = typer.Option(None, "--owner-id", help="Owning user identifier."),
    raw_value: Optional[float] = typer.Option(None, "--raw-value", help="Raw sensor value."),
    battery_level: Optional[int] = typer.Option(None, "--battery", help="Battery level in percent."),
    signal_strength: Optional[int] = typer.Option(None, "--signal", help="Signal strength in percent."),
) -> None:
    """Send one glucose reading."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {
        "value": value,
        "timestamp": timestamp,
        "trend": trend,
        "noise": noise,
        "device": device,
        "ownerId": owner_id,
        "rawValue": raw_value,
        "batteryLevel": battery_level,
        "signalStrength": signal_strength,
    }
    result = state.client.ingest({key: item for key, item in payload.items() if item is not None})
    typer.secho("Reading accepted.", fg=typer.colors.GREEN)
    render_ingest(result)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of readings (1-100)."),
    owner_id: Optional[str] = typer.Option(None, "--owner-id", help="Filter by owner."),
    since: Optional[str] = typer.Option(None, "--since", help="ISO 8601 lower bound."),
    until: Optional[str] = typer.Option(None, "--until", help="ISO 8601 upper bound."),
) -> None:
    """List readings newest first."""
    state = _get_state(ctx)
    payload = state.client.readings(
        {"limit": limit, "ownerId": owner_id, "since": since, "until": until}
    )
    render_readings(payload)


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    owner_id: Optional[str] = typer.Option(None, "--owner-id", help="Filter by owner."),
) -> None:
    """Show the most recent reading."""
    state = _get_state(ctx)
    render_latest(state.client.latest(owner_id))


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    owner_id: Optional[str] = typer.Option(None, "--owner-id", help="Restrict to one owner."),
    hours: Optional[float] = typer.Option(None, "--hours", help="Lookback window in hours."),
) -> None:
    """Show time-in-range statistics."""
    state = _get_state(ctx)
    render_stats(state.client.stats(owner_id=owner_id, hours=hours))


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Check service health."""
    state = _get_state(ctx)
    render_health(state.client.health())
