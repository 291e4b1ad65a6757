from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the glucose telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        headers = {"Authorization": f"Bearer {config.token}"} if config.token else {}
        self._client = httpx.Client(
            base_url=config.base_url, timeout=config.timeout, headers=headers
        )

    def close(self) -> None:
        self._client.close()

    def ingest(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/ingest", json=payload)

    def readings(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("GET", "/api/readings", params=_drop_none(params))

    def latest(self, owner_id: Optional[str] = None) -> Dict[str, Any]:
        return self._request(
            "GET", "/api/readings/latest", params=_drop_none({"ownerId": owner_id})
        )

    def stats(self, owner_id: Optional[str] = None, hours: Optional[float] = None) -> Dict[str, Any]:
        path = f"/api/stats/{owner_id}" if owner_id else "/api/stats"
        return self._request("GET", path, params=_drop_none({"hours": hours}))

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("message")
            for item in data.get("details") or []:
                if isinstance(item, dict):
                    detail = f"{detail}; {item.get('field')}: {item.get('message')}"
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _drop_none(params: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}
