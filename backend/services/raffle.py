from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from raffle.chain import TransactionSigner, connect
from raffle.errors import TransferFailed
from raffle.events import EventLog, event_to_dict
from raffle.funds import FundsTransfer, InMemoryFunds, Web3FundsTransfer
from raffle.machine import Raffle
from raffle.types import RoundSnapshot, UpkeepDiagnostics
from raffle.vrf import MockVrfCoordinator, RandomnessCoordinator, Web3VrfCoordinator

from ..config import AppSettings, load_settings
from .rounds import RoundRepository

logger = logging.getLogger("raffle.backend")


class MockFulfillmentUnavailable(RuntimeError):
    pass


class RaffleService:
    """Runs raffle operations and persists the round after each one that succeeds."""

    def __init__(
        self,
        raffle: Raffle,
        repository: RoundRepository,
        oracle: RandomnessCoordinator,
        funds: FundsTransfer,
    ) -> None:
        self._raffle = raffle
        self._repo = repository
        self._oracle = oracle
        self._funds = funds
        self._lock = threading.RLock()

    @property
    def raffle(self) -> Raffle:
        return self._raffle

    @property
    def funds(self) -> FundsTransfer:
        return self._funds

    def status(self) -> RoundSnapshot:
        return self._raffle.snapshot()

    def enter(self, identity: str, amount: int) -> RoundSnapshot:
        with self._lock:
            self._raffle.enter(identity, amount)
            return self._persist()

    def check_upkeep(self) -> Tuple[bool, UpkeepDiagnostics]:
        return self._raffle.check_upkeep()

    def perform_upkeep(self) -> int:
        with self._lock:
            request_id = self._raffle.perform_upkeep()
            self._persist()
            return request_id

    def fulfill_random_words(self, caller: Optional[str], request_id: int, random_words: Sequence[int]) -> str:
        with self._lock:
            try:
                winner = self._raffle.fulfill_random_words(caller, request_id, random_words)
            except TransferFailed:
                # The payout marker was cleared; record that so a retry is honoured after a restart.
                self._persist()
                raise
            self._persist()
            return winner

    def resolve_payout(self, paid: bool) -> Optional[str]:
        with self._lock:
            winner = self._raffle.resolve_payout(paid)
            self._persist()
            return winner

    def rerequest_randomness(self) -> int:
        with self._lock:
            request_id = self._raffle.rerequest_randomness()
            self._persist()
            return request_id

    def mock_fulfill(self, words: Optional[Sequence[int]] = None) -> Tuple[int, str]:
        if not isinstance(self._oracle, MockVrfCoordinator):
            raise MockFulfillmentUnavailable("Mock fulfillment is only available with VRF__MODE=mock")
        with self._lock:
            request_id = self._raffle.outstanding_request_id
            if request_id is None or not self._oracle.is_pending(request_id):
                raise MockFulfillmentUnavailable("No pending mock randomness request")
            self._oracle.fulfill_random_words(request_id, self, words)
            return request_id, self._raffle.recent_winner

    def events(self) -> List[dict]:
        return [event_to_dict(event) for event in self._raffle.events.events]

    def _persist(self) -> RoundSnapshot:
        snapshot = self._raffle.snapshot()
        self._repo.save(snapshot)
        return snapshot


def build_oracle_and_funds(settings: AppSettings) -> Tuple[RandomnessCoordinator, FundsTransfer]:
    web3_settings = settings.web3
    if web3_settings.vrf_mode == "mock":
        oracle = MockVrfCoordinator(address=settings.raffle.vrf.coordinator_address)
        funds: FundsTransfer = InMemoryFunds()
        return oracle, funds

    web3 = connect(web3_settings.rpc_url)
    signer = TransactionSigner(web3, web3_settings.signer_key, chain_id=web3_settings.chain_id)
    oracle = Web3VrfCoordinator(signer, settings.raffle.vrf.coordinator_address)
    return oracle, Web3FundsTransfer(signer)


def build_service(settings: AppSettings, repository: Optional[RoundRepository] = None) -> RaffleService:
    repository = repository or RoundRepository()
    oracle, funds = build_oracle_and_funds(settings)

    snapshot = repository.load()
    if snapshot is None:
        raffle = Raffle(
            settings.raffle, oracle, funds, events=EventLog(settings.event_log_size), checkpoint=repository.save
        )
        repository.save(raffle.snapshot())
        logger.info("Started a new round (mode=%s)", settings.web3.vrf_mode)
    else:
        raffle = Raffle.restore(
            snapshot,
            settings.raffle,
            oracle,
            funds,
            events=EventLog(settings.event_log_size),
            checkpoint=repository.save,
        )
        if isinstance(oracle, MockVrfCoordinator) and snapshot.outstanding_request_id is not None:
            if snapshot.settling_request_id is None:
                oracle.resume(snapshot.outstanding_request_id, settings.raffle.vrf.num_words)
        if snapshot.settling_request_id is not None:
            logger.warning(
                "Payout for request %s to %s was started but never recorded; resolve it via the admin API",
                snapshot.settling_request_id,
                snapshot.settling_winner,
            )
        logger.info(
            "Restored round state=%s players=%s request=%s",
            snapshot.state.name,
            len(snapshot.players),
            snapshot.outstanding_request_id,
        )
    return RaffleService(raffle, repository, oracle, funds)


@lru_cache(maxsize=1)
def get_raffle_service() -> RaffleService:
    return build_service(load_settings())
