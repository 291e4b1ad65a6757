"""Command-line client for the glucose telemetry service.

The Typer application lives in ``cli.app``; run it as ``glucose-cli``.
"""
