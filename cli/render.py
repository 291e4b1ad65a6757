from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _range_label(reading: Dict[str, Any]) -> str:
    if reading.get("isLow"):
        return "LOW"
    if reading.get("isHigh"):
        return "HIGH"
    return "in range"


def render_reading(reading: Dict[str, Any]) -> None:
    echo_key_values(
        [
            ("id", reading.get("id")),
            ("value", f"{reading.get('value')} mg/dL"),
            ("timestamp", reading.get("timestamp")),
            ("trend", reading.get("trend")),
            ("noise", reading.get("noise")),
            ("device", reading.get("device")),
            ("time_ago", reading.get("timeAgo")),
        ]
    )
    if "valueMmol" in reading:
        echo_key_values(
            [
                ("value_mmol", f"{reading.get('valueMmol')} mmol/L"),
                ("range", _range_label(reading)),
            ]
        )


def render_ingest(payload: Dict[str, Any]) -> None:
    echo_heading(payload.get("message") or "Reading stored")
    render_reading(payload.get("data") or {})


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading(payload.get("message") or "Readings")
    readings = payload.get("data") or []
    if not readings:
        typer.echo("No readings found.")
    for reading in readings:
        typer.echo(
            f"  - {reading.get('timestamp')}  {reading.get('value')} mg/dL "
            f"({reading.get('valueMmol')} mmol/L)  {reading.get('trend')}  "
            f"[{_range_label(reading)}]  {reading.get('timeAgo')}"
        )

    stats = payload.get("stats") or {}
    if stats.get("count"):
        typer.echo()
        echo_heading("Page statistics")
        counts = stats.get("range") or {}
        echo_key_values(
            [
                ("count", stats.get("count")),
                ("average", stats.get("average")),
                ("min", stats.get("min")),
                ("max", stats.get("max")),
                ("low/normal/high", f"{counts.get('low')}/{counts.get('normal')}/{counts.get('high')}"),
            ]
        )


def render_latest(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    render_reading(payload.get("data") or {})


def render_stats(payload: Dict[str, Any]) -> None:
    data = payload.get("data") or {}
    echo_heading(payload.get("message") or "Statistics")
    echo_key_values(
        [
            ("count", data.get("count")),
            ("average", data.get("average")),
            ("min", data.get("min")),
            ("max", data.get("max")),
        ]
    )
    time_in_range = data.get("timeInRange") or {}
    typer.echo()
    echo_heading("Time in range")
    echo_key_values(
        [
            ("low", f"{time_in_range.get('low', 0)}% ({data.get('low', 0)})"),
            ("normal", f"{time_in_range.get('normal', 0)}% ({data.get('normal', 0)})"),
            ("high", f"{time_in_range.get('high', 0)}% ({data.get('high', 0)})"),
        ]
    )


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Service Health")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("environment", payload.get("environment")),
            ("version", payload.get("version")),
            ("uptime", f"{round(payload.get('uptime') or 0)}s"),
        ]
    )
