import asyncio
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from keeper.config import KeeperSettings
from keeper.raffle_client import HttpRaffleClient
from keeper.scheduler import KeeperScheduler, KeeperStateStore
from keeper.types import UpkeepOutcome, UpkeepStatus


class FakeClient:
    def __init__(self, status: UpkeepStatus, outcome: UpkeepOutcome = None) -> None:
        self._status = status
        self._outcome = outcome or UpkeepOutcome(request_id=1)
        self.performed = 0
        self.closed = False

    async def check_upkeep(self) -> UpkeepStatus:
        return self._status

    async def perform_upkeep(self) -> UpkeepOutcome:
        self.performed += 1
        return self._outcome

    async def close(self) -> None:
        self.closed = True


def _response(status_code, payload):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


class KeeperSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.state_path = Path(self._tmpdir.name) / "keeper.json"

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def _make_settings(self) -> KeeperSettings:
        return KeeperSettings(
            raffle_api_url="http://raffle.test",
            poll_interval_seconds=1,
            submit_only_once=True,
            state_file=str(self.state_path),
        )

    def test_scheduler_skips_when_upkeep_not_needed(self) -> None:
        status = UpkeepStatus(upkeep_needed=False, reasons=("no_players",), player_count=0)
        client = FakeClient(status)
        scheduler = KeeperScheduler(self._make_settings(), client)

        result = asyncio.run(scheduler.run_once())

        self.assertIsNone(result)
        self.assertEqual(client.performed, 0)
        self.assertTrue(client.closed)
        self.assertFalse(self.state_path.exists())

    def test_scheduler_triggers_draw_and_persists_request(self) -> None:
        status = UpkeepStatus(upkeep_needed=True, player_count=3)
        client = FakeClient(status, UpkeepOutcome(request_id=42))
        scheduler = KeeperScheduler(self._make_settings(), client)

        result = asyncio.run(scheduler.run_once())

        self.assertIsNotNone(result)
        self.assertEqual(result.request_id, 42)
        self.assertEqual(result.player_count, 3)
        self.assertEqual(scheduler.last_request_id, 42)
        persisted = json.loads(self.state_path.read_text(encoding="utf-8"))
        self.assertEqual(persisted["last_request_id"], "42")

    def test_lost_race_is_not_recorded(self) -> None:
        status = UpkeepStatus(upkeep_needed=True, player_count=1)
        client = FakeClient(status, UpkeepOutcome(request_id=None, reasons=("not_open",)))
        scheduler = KeeperScheduler(self._make_settings(), client)

        result = asyncio.run(scheduler.run_once())

        self.assertIsNone(result)
        self.assertEqual(client.performed, 1)
        self.assertIsNone(scheduler.last_request_id)

    def test_run_forever_exits_after_first_draw_when_submit_once(self) -> None:
        status = UpkeepStatus(upkeep_needed=True, player_count=2)
        client = FakeClient(status, UpkeepOutcome(request_id=7))
        scheduler = KeeperScheduler(self._make_settings(), client)

        asyncio.run(scheduler.run_forever())

        self.assertEqual(client.performed, 1)
        self.assertTrue(client.closed)

    def test_state_store_survives_restart(self) -> None:
        KeeperStateStore(str(self.state_path)).save_last_request(2**200)
        client = FakeClient(UpkeepStatus(upkeep_needed=False))

        scheduler = KeeperScheduler(self._make_settings(), client)

        self.assertEqual(scheduler.last_request_id, 2**200)

    def test_corrupt_state_file_is_ignored(self) -> None:
        self.state_path.write_text("{not json", encoding="utf-8")

        self.assertIsNone(KeeperStateStore(str(self.state_path)).load_last_request())


class HttpRaffleClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = KeeperSettings(raffle_api_url="http://raffle.test/", timeout_seconds=3)
        self.session = mock.Mock()

    def test_check_upkeep_parses_diagnostics(self) -> None:
        self.session.get.return_value = _response(
            200,
            {
                "upkeep_needed": False,
                "diagnostics": {"reasons": ["interval_not_elapsed"], "player_count": 2, "state": "OPEN"},
            },
        )
        client = HttpRaffleClient(self.settings, session=self.session)

        status = asyncio.run(client.check_upkeep())

        self.session.get.assert_called_once_with("http://raffle.test/raffle/upkeep", timeout=3)
        self.assertFalse(status.upkeep_needed)
        self.assertEqual(status.reasons, ("interval_not_elapsed",))
        self.assertEqual(status.player_count, 2)

    def test_check_upkeep_rejects_malformed_payload(self) -> None:
        self.session.get.return_value = _response(200, {"diagnostics": {}})
        client = HttpRaffleClient(self.settings, session=self.session)

        with self.assertRaises(ValueError):
            asyncio.run(client.check_upkeep())

    def test_perform_upkeep_returns_request_id(self) -> None:
        self.session.post.return_value = _response(200, {"request_id": "5", "state": "CALCULATING"})
        client = HttpRaffleClient(self.settings, session=self.session)

        outcome = asyncio.run(client.perform_upkeep())

        self.assertEqual(outcome.request_id, 5)

    def test_perform_upkeep_conflict_means_no_draw(self) -> None:
        self.session.post.return_value = _response(
            409, {"error": "upkeep not needed", "diagnostics": {"reasons": ["not_open"]}}
        )
        client = HttpRaffleClient(self.settings, session=self.session)

        outcome = asyncio.run(client.perform_upkeep())

        self.assertIsNone(outcome.request_id)
        self.assertEqual(outcome.reasons, ("not_open",))

    def test_close_closes_session(self) -> None:
        client = HttpRaffleClient(self.settings, session=self.session)

        asyncio.run(client.close())

        self.session.close.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
