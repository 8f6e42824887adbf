from __future__ import annotations

import asyncio
import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Optional, Protocol

from .config import KeeperSettings
from .types import UpkeepOutcome, UpkeepStatus


class RaffleClientProtocol(Protocol):
    async def check_upkeep(self) -> UpkeepStatus:
        ...

    async def perform_upkeep(self) -> UpkeepOutcome:
        ...

    async def close(self) -> None:
        ...


@dataclass
class KeeperResult:
    request_id: int
    player_count: int


class KeeperStateStore:
    """Remembers the last randomness request this keeper triggered."""

    def __init__(self, path: str) -> None:
        self._path = pathlib.Path(path)

    def load_last_request(self) -> Optional[int]:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        value = data.get("last_request_id")
        return int(value) if value is not None else None

    def save_last_request(self, request_id: int) -> None:
        payload = {"last_request_id": str(request_id)}
        self._path.write_text(json.dumps(payload), encoding="utf-8")


class KeeperScheduler:
    def __init__(
        self,
        settings: KeeperSettings,
        client: RaffleClientProtocol,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._state = KeeperStateStore(settings.state_file)
        self._last_request_id = self._state.load_last_request()
        self._logger = logger or logging.getLogger("raffle.keeper")

    @property
    def last_request_id(self) -> Optional[int]:
        return self._last_request_id

    async def run_forever(self) -> None:
        interval = self._settings.poll_interval_seconds
        self._logger.info("Keeper loop started; poll interval=%s", interval)
        try:
            while True:
                try:
                    result = await self._attempt_upkeep()
                    if result is not None and self._settings.submit_only_once:
                        self._logger.info("Submit-once flag set; exiting loop.")
                        return
                except Exception as exc:
                    self._logger.exception("Keeper iteration failed: %s", exc)
                await asyncio.sleep(interval)
        finally:
            await self._client.close()

    async def run_once(self) -> Optional[KeeperResult]:
        try:
            return await self._attempt_upkeep()
        finally:
            await self._client.close()

    async def _attempt_upkeep(self) -> Optional[KeeperResult]:
        status = await self._client.check_upkeep()
        if not status.upkeep_needed:
            self._logger.debug(
                "Upkeep not needed (state=%s players=%s reasons=%s)",
                status.state,
                status.player_count,
                ",".join(status.reasons) or "-",
            )
            return None

        self._logger.info("Upkeep needed with %s players; triggering draw.", status.player_count)
        outcome = await self._client.perform_upkeep()
        if outcome.request_id is None:
            self._logger.info(
                "Draw was not started (reasons=%s); another trigger may have won.",
                ",".join(outcome.reasons) or "-",
            )
            return None

        self._logger.info("Randomness requested: request=%s", outcome.request_id)
        self._last_request_id = outcome.request_id
        self._state.save_last_request(outcome.request_id)
        return KeeperResult(request_id=outcome.request_id, player_count=status.player_count)
