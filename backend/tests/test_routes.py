import importlib
import json
import os
import unittest
from unittest import mock

from web3 import Web3

import backend.config as config_module
from raffle.vrf import MOCK_COORDINATOR_ADDRESS

ENTRY_FEE = 10**16
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


class RaffleRoutesTests(unittest.TestCase):
    env = {
        "DATABASE_URL": "sqlite:///:memory:",
        "ADMIN_API_KEY": "test-admin",
        "ORACLE_CALLBACK_TOKEN": "test-oracle",
        "VRF__MODE": "mock",
        "VRF__COORDINATOR_ADDRESS": MOCK_COORDINATOR_ADDRESS,
        "VRF__NUM_WORDS": "2",
        "RAFFLE__ENTRY_FEE_WEI": str(ENTRY_FEE),
        "RAFFLE__INTERVAL_SECONDS": "0",
    }

    def setUp(self) -> None:
        self._previous_env = {key: os.environ.get(key) for key in self.env}
        os.environ.update(self.env)
        os.environ.pop("RAFFLE__REREQUEST_GRACE_SECONDS", None)
        self._build_app()

    def _build_app(self) -> None:
        config_module.load_settings.cache_clear()

        import backend.db as db_module
        import backend.models as models_module
        import backend.services.rounds as rounds_service_module
        import backend.services.raffle as raffle_service_module
        import backend.routes.raffle as raffle_route_module
        import backend.routes.admin as admin_route_module
        import backend.routes.config as config_route_module
        import backend.app as app_module

        importlib.reload(config_module)
        importlib.reload(db_module)
        importlib.reload(models_module)
        importlib.reload(rounds_service_module)
        self.raffle_service_module = importlib.reload(raffle_service_module)
        importlib.reload(raffle_route_module)
        importlib.reload(admin_route_module)
        importlib.reload(config_route_module)
        app_module = importlib.reload(app_module)

        self.app = app_module.create_app()
        self.client = self.app.test_client()
        self.rounds_module = rounds_service_module

    def tearDown(self) -> None:
        for key, value in self._previous_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        config_module.load_settings.cache_clear()

    def _admin_headers(self):
        return {"X-Admin-Token": "test-admin"}

    def _oracle_headers(self):
        return {"X-Oracle-Token": "test-oracle"}

    def _enter(self, identity: str, amount: int = ENTRY_FEE):
        return self.client.post(
            "/raffle/entries",
            data=json.dumps({"identity": identity, "amount": str(amount)}),
            content_type="application/json",
        )

    def _fulfill(self, request_id, words, headers=None):
        return self.client.post(
            "/raffle/fulfill",
            headers=headers or {},
            data=json.dumps({"request_id": str(request_id), "random_words": [str(w) for w in words]}),
            content_type="application/json",
        )

    def test_health_and_config(self) -> None:
        self.assertEqual(self.client.get("/health").get_json(), {"status": "ok"})

        config = self.client.get("/config").get_json()
        self.assertEqual(config["entry_fee_wei"], str(ENTRY_FEE))
        self.assertEqual(config["interval_seconds"], 0)
        self.assertEqual(config["vrf_mode"], "mock")
        self.assertEqual(config["num_words"], 2)

    def test_initial_status(self) -> None:
        payload = self.client.get("/raffle").get_json()

        self.assertEqual(payload["state"], "OPEN")
        self.assertEqual(payload["players"], [])
        self.assertEqual(payload["pool_balance"], "0")
        self.assertIsNone(payload["outstanding_request_id"])

    def test_entry_is_checksummed_and_counted(self) -> None:
        response = self._enter(ALICE)

        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertEqual(payload["identity"], Web3.to_checksum_address(ALICE))
        self.assertEqual(payload["player_count"], 1)
        self.assertEqual(payload["pool_balance"], str(ENTRY_FEE))

        player = self.client.get("/raffle/players/0").get_json()
        self.assertEqual(player["identity"], Web3.to_checksum_address(ALICE))
        self.assertEqual(self.client.get("/raffle/players/1").status_code, 404)

    def test_entry_rejections(self) -> None:
        low = self._enter(ALICE, ENTRY_FEE - 1)
        self.assertEqual(low.status_code, 400)
        self.assertEqual(low.get_json()["type"], "InsufficientPayment")

        bad_address = self._enter("not-an-address")
        self.assertEqual(bad_address.status_code, 400)

        status = self.client.get("/raffle").get_json()
        self.assertEqual(status["player_count"], 0)

    def test_upkeep_not_needed_without_players(self) -> None:
        check = self.client.get("/raffle/upkeep").get_json()
        self.assertFalse(check["upkeep_needed"])
        self.assertIn("no_players", check["diagnostics"]["reasons"])

        response = self.client.post("/raffle/upkeep")
        self.assertEqual(response.status_code, 409)
        self.assertIn("no_players", response.get_json()["diagnostics"]["reasons"])

    def test_full_draw_through_oracle_callback(self) -> None:
        self._enter(ALICE)
        self._enter(BOB)

        check = self.client.get("/raffle/upkeep").get_json()
        self.assertTrue(check["upkeep_needed"])

        performed = self.client.post("/raffle/upkeep")
        self.assertEqual(performed.status_code, 200)
        request_id = performed.get_json()["request_id"]
        self.assertEqual(performed.get_json()["state"], "CALCULATING")

        closed = self._enter(ALICE)
        self.assertEqual(closed.status_code, 409)

        unauthorized = self._fulfill(request_id, [1])
        self.assertEqual(unauthorized.status_code, 403)

        wrong_id = self._fulfill(int(request_id) + 1, [1], headers=self._oracle_headers())
        self.assertEqual(wrong_id.status_code, 409)
        self.assertEqual(wrong_id.get_json()["type"], "RequestMismatch")

        fulfilled = self._fulfill(request_id, [5, 99], headers=self._oracle_headers())
        self.assertEqual(fulfilled.status_code, 200)
        self.assertEqual(fulfilled.get_json()["winner"], Web3.to_checksum_address(BOB))
        self.assertEqual(fulfilled.get_json()["state"], "OPEN")

        replay = self._fulfill(request_id, [5], headers=self._oracle_headers())
        self.assertEqual(replay.status_code, 409)

        status = self.client.get("/raffle").get_json()
        self.assertEqual(status["state"], "OPEN")
        self.assertEqual(status["player_count"], 0)
        self.assertEqual(status["pool_balance"], "0")
        self.assertEqual(status["recent_winner"], Web3.to_checksum_address(BOB))

        service = self.raffle_service_module.get_raffle_service()
        self.assertEqual(service.funds.balance_of(BOB), 2 * ENTRY_FEE)

        persisted = self.rounds_module.RoundRepository().load()
        self.assertEqual(persisted.recent_winner, Web3.to_checksum_address(BOB))
        self.assertEqual(persisted.players, ())

        events = [event["event"] for event in self.client.get("/raffle/events").get_json()]
        self.assertEqual(events, ["Entered", "Entered", "RandomnessRequested", "WinnerPicked"])

    def test_admin_routes_require_token(self) -> None:
        response = self.client.post("/admin/api/rerequest")
        self.assertEqual(response.status_code, 401)

    def test_rerequest_disabled_by_default(self) -> None:
        self._enter(ALICE)
        self.client.post("/raffle/upkeep")

        response = self.client.post("/admin/api/rerequest", headers=self._admin_headers())

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["type"], "RerequestNotAllowed")

    def test_mock_fulfill_completes_draw(self) -> None:
        nothing_pending = self.client.post("/admin/api/mock/fulfill", headers=self._admin_headers())
        self.assertEqual(nothing_pending.status_code, 409)

        self._enter(ALICE)
        self.client.post("/raffle/upkeep")

        response = self.client.post(
            "/admin/api/mock/fulfill",
            headers=self._admin_headers(),
            data=json.dumps({"random_words": [0]}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["winner"], Web3.to_checksum_address(ALICE))
        self.assertEqual(self.client.get("/raffle").get_json()["state"], "OPEN")


    def _start_draw(self) -> str:
        self._enter(ALICE)
        self._enter(BOB)
        return self.client.post("/raffle/upkeep").get_json()["request_id"]

    def _restart_service(self) -> None:
        self.raffle_service_module.get_raffle_service.cache_clear()

    def test_claimed_coordinator_address_is_not_trusted(self) -> None:
        request_id = self._start_draw()
        coordinator = self.client.get("/config").get_json()["coordinator_address"]

        spoofed = self._fulfill(request_id, [0], headers={"X-Caller": coordinator})
        wrong_token = self._fulfill(
            request_id, [0], headers={"X-Caller": coordinator, "X-Oracle-Token": "guess"}
        )

        self.assertEqual(spoofed.status_code, 403)
        self.assertEqual(wrong_token.status_code, 403)
        status = self.client.get("/raffle").get_json()
        self.assertEqual(status["state"], "CALCULATING")
        self.assertEqual(status["outstanding_request_id"], request_id)
        self.assertIsNone(status["recent_winner"])

    def test_callbacks_refused_without_configured_token(self) -> None:
        os.environ.pop("ORACLE_CALLBACK_TOKEN")
        self._build_app()
        request_id = self._start_draw()

        response = self._fulfill(request_id, [0], headers=self._oracle_headers())

        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.get("/raffle").get_json()["state"], "CALCULATING")

    def test_lost_save_after_payout_does_not_pay_again(self) -> None:
        request_id = self._start_draw()
        first_service = self.raffle_service_module.get_raffle_service()

        with mock.patch.object(self.rounds_module.RoundRepository, "save", side_effect=RuntimeError("disk full")):
            failed = self._fulfill(request_id, [1], headers=self._oracle_headers())
        self.assertEqual(failed.status_code, 500)
        self.assertEqual(first_service.funds.balance_of(BOB), 2 * ENTRY_FEE)

        self._restart_service()
        status = self.client.get("/raffle").get_json()
        self.assertEqual(status["state"], "CALCULATING")
        self.assertEqual(status["settling_request_id"], request_id)

        replay = self._fulfill(request_id, [1], headers=self._oracle_headers())
        self.assertEqual(replay.status_code, 409)
        self.assertEqual(replay.get_json()["type"], "PayoutInDoubt")
        restarted = self.raffle_service_module.get_raffle_service()
        self.assertEqual(restarted.funds.balance_of(BOB), 0)

        resolved = self.client.post(
            "/admin/api/payout/resolve",
            headers=self._admin_headers(),
            data=json.dumps({"paid": True}),
            content_type="application/json",
        )
        self.assertEqual(resolved.status_code, 200)
        self.assertEqual(resolved.get_json(), {"winner": Web3.to_checksum_address(BOB), "state": "OPEN"})
        persisted = self.rounds_module.RoundRepository().load()
        self.assertIsNone(persisted.settling_request_id)
        self.assertEqual(persisted.players, ())

    def test_failed_transfer_is_persisted_as_retryable(self) -> None:
        request_id = self._start_draw()
        self.raffle_service_module.get_raffle_service().funds.refuse(BOB)

        failed = self._fulfill(request_id, [1], headers=self._oracle_headers())

        self.assertEqual(failed.status_code, 502)
        persisted = self.rounds_module.RoundRepository().load()
        self.assertEqual(persisted.state.name, "CALCULATING")
        self.assertIsNone(persisted.settling_request_id)

    def test_mock_fulfill_after_restart(self) -> None:
        request_id = self._start_draw()
        self._restart_service()

        response = self.client.post("/admin/api/mock/fulfill", headers=self._admin_headers())

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["request_id"], request_id)
        self.assertEqual(self.client.get("/raffle").get_json()["state"], "OPEN")
        self._enter(ALICE)
        next_id = self.client.post("/raffle/upkeep").get_json()["request_id"]
        self.assertGreater(int(next_id), int(request_id))

    def test_resolve_without_pending_payout(self) -> None:
        response = self.client.post(
            "/admin/api/payout/resolve",
            headers=self._admin_headers(),
            data=json.dumps({"paid": False}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 409)


if __name__ == "__main__":
    unittest.main()
