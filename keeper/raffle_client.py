from __future__ import annotations

import asyncio
from typing import Any, Mapping

import requests

from .config import KeeperSettings
from .types import UpkeepOutcome, UpkeepStatus


class HttpRaffleClient:
    """Talks to the raffle service's upkeep endpoints."""

    def __init__(self, settings: KeeperSettings, session: requests.Session = None) -> None:
        self._base_url = settings.raffle_api_url.rstrip("/")
        self._timeout = settings.timeout_seconds
        self._session = session or requests.Session()

    async def check_upkeep(self) -> UpkeepStatus:
        payload = await asyncio.to_thread(self._get_json, "/raffle/upkeep")
        return self._parse_status(payload)

    async def perform_upkeep(self) -> UpkeepOutcome:
        return await asyncio.to_thread(self._sync_perform_upkeep)

    async def close(self) -> None:
        self._session.close()

    def _get_json(self, path: str) -> Mapping[str, Any]:
        resp = self._session.get(f"{self._base_url}{path}", timeout=self._timeout)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, Mapping):
            raise ValueError("Raffle API returned non-object payload")
        return data

    def _sync_perform_upkeep(self) -> UpkeepOutcome:
        resp = self._session.post(f"{self._base_url}/raffle/upkeep", timeout=self._timeout)
        if resp.status_code == 409:
            diagnostics = (resp.json() or {}).get("diagnostics") or {}
            return UpkeepOutcome(request_id=None, reasons=tuple(diagnostics.get("reasons") or ()))
        resp.raise_for_status()
        data = resp.json()
        try:
            return UpkeepOutcome(request_id=int(data["request_id"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("Raffle API returned no request id") from exc

    @staticmethod
    def _parse_status(payload: Mapping[str, Any]) -> UpkeepStatus:
        if "upkeep_needed" not in payload:
            raise ValueError("Missing upkeep_needed field")
        diagnostics = payload.get("diagnostics") or {}
        return UpkeepStatus(
            upkeep_needed=bool(payload["upkeep_needed"]),
            reasons=tuple(diagnostics.get("reasons") or ()),
            player_count=int(diagnostics.get("player_count") or 0),
            state=str(diagnostics.get("state") or "OPEN"),
            raw=dict(diagnostics),
        )
