from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import load_config

READING = {
    "id": "3f0c7a4e-1d2b-4c5e-8f9a-0b1c2d3e4f50",
    "value": 190.0,
    "valueMmol": 10.5,
    "timestamp": "2024-01-01T00:00:00Z",
    "trend": "Rising",
    "noise": "Clean",
    "device": "xDrip+",
    "timeAgo": "5 minutes ago",
    "isLow": False,
    "isHigh": True,
    "isInRange": False,
}


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.ingested: List[Dict[str, Any]] = []
        self.reading_params: List[Dict[str, Any]] = []
        self.stats_calls: List[tuple[Optional[str], Optional[float]]] = []
        self.closed = False

    def ingest(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.ingested.append(payload)
        return {"success": True, "message": "Glucose reading saved successfully", "data": READING}

    def readings(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.reading_params.append(params)
        return {
            "success": True,
            "message": "Retrieved 1 glucose reading",
            "data": [READING],
            "stats": {
                "count": 1,
                "average": 190.0,
                "min": 190.0,
                "max": 190.0,
                "range": {"low": 0, "normal": 0, "high": 1},
            },
        }

    def latest(self, owner_id: Optional[str] = None) -> Dict[str, Any]:
        return {"success": True, "data": READING}

    def stats(self, owner_id: Optional[str] = None, hours: Optional[float] = None) -> Dict[str, Any]:
        self.stats_calls.append((owner_id, hours))
        return {
            "success": True,
            "message": "Statistics for the last 24 hours",
            "data": {
                "count": 3,
                "average": 113.3,
                "min": 50.0,
                "max": 190.0,
                "low": 1,
                "normal": 1,
                "high": 1,
                "timeInRange": {"low": 33, "normal": 33, "high": 33},
            },
        }

    def health(self) -> Dict[str, Any]:
        return {"status": "OK", "environment": "test", "version": "1.0.0", "uptime": 12.4}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def test_ingest_sends_only_given_fields(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["ingest", "190", "--trend", "Rising", "--battery", "80"])

    assert result.exit_code == 0
    assert "Reading accepted." in result.stdout
    assert "value: 190.0 mg/dL" in result.stdout
    assert stub.ingested == [{"value": 190.0, "trend": "Rising", "batteryLevel": 80}]
    assert stub.closed is True


def test_readings_command_renders_page(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["readings", "-n", "5"])

    assert result.exit_code == 0
    assert "Retrieved 1 glucose reading" in result.stdout
    assert "[HIGH]" in result.stdout
    assert "low/normal/high: 0/0/1" in result.stdout
    assert stub.reading_params == [
        {"limit": 5, "ownerId": None, "since": None, "until": None}
    ]


def test_latest_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["latest"])

    assert result.exit_code == 0
    assert "Latest Reading" in result.stdout
    assert "value_mmol: 10.5 mmol/L" in result.stdout
    assert "range: HIGH" in result.stdout


def test_stats_command(runner: CliRunner, stub: StubClient) -> None:
    owner = "0b8f5a0e-7a43-4c0e-9d0d-2f6d1c9b1a01"
    result = runner.invoke(app, ["stats", "--owner-id", owner, "--hours", "12"])

    assert result.exit_code == 0
    assert "normal: 33% (1)" in result.stdout
    assert stub.stats_calls == [(owner, 12.0)]


def test_health_command_uses_base_url_option(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["--base-url", "http://cgm.local:9000/", "health"])

    assert result.exit_code == 0
    assert "status: OK" in result.stdout
    assert "uptime: 12s" in result.stdout
    assert stub.config.base_url == "http://cgm.local:9000"


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://example.test/")
    monkeypatch.setenv("CLI_TIMEOUT", "not-a-number")
    monkeypatch.setenv("API_TOKEN", " token ")

    config = load_config()

    assert config.base_url == "http://example.test"
    assert config.timeout == 30.0
    assert config.token == "token"


def test_load_config_prefers_arguments(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://example.test")
    monkeypatch.setenv("API_TOKEN", "from-env")

    config = load_config(base_url="cgm.local:9000", timeout=2.5, token="explicit")

    assert config.base_url == "http://cgm.local:9000"
    assert config.timeout == 2.5
    assert config.token == "explicit"
