from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence, Tuple

from .config import RaffleSettings
from .coordinator import RandomnessRequestCoordinator
from .errors import (
    AuthenticityFailed,
    PayoutInDoubt,
    PreconditionFailed,
    ReentrantCall,
    RerequestNotAllowed,
    TransferFailed,
    UpkeepNotNeeded,
)
from .events import Entered, EventLog, RandomnessRequested, WinnerPicked
from .funds import FundsTransfer
from .ledger import EntryLedger
from .payout import PayoutEngine
from .selection import select_winner
from .types import RaffleState, Round, RoundSnapshot, UpkeepDiagnostics
from .upkeep import check_upkeep
from .vrf import RandomnessCoordinator

logger = logging.getLogger("raffle.machine")


class Raffle:
    """A recurring raffle drawn with externally supplied randomness.

    The round cycles OPEN -> CALCULATING -> OPEN. ``perform_upkeep`` starts a
    draw by requesting randomness; the draw only completes when the
    coordinator calls back through ``fulfill_random_words`` with the id of
    the outstanding request. Every public mutation runs under one lock and
    a nested mutation from the same thread (for example from inside the
    payout transfer) is refused.
    """

    def __init__(
        self,
        settings: RaffleSettings,
        oracle: RandomnessCoordinator,
        funds: FundsTransfer,
        *,
        clock: Callable[[], float] = time.time,
        events: Optional[EventLog] = None,
        round_: Optional[Round] = None,
        checkpoint: Optional[Callable[[RoundSnapshot], None]] = None,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._round = round_ if round_ is not None else Round(last_draw_timestamp=clock())
        self._ledger = EntryLedger(self._round, settings.entry_fee)
        self._coordinator = RandomnessRequestCoordinator(oracle, settings.vrf)
        self._payout = PayoutEngine(funds)
        self._checkpoint = checkpoint
        self.events = events if events is not None else EventLog()
        self._lock = threading.RLock()
        self._busy = False

    @classmethod
    def restore(
        cls,
        snapshot: RoundSnapshot,
        settings: RaffleSettings,
        oracle: RandomnessCoordinator,
        funds: FundsTransfer,
        **kwargs,
    ) -> "Raffle":
        calculating = snapshot.state == RaffleState.CALCULATING
        if calculating != (snapshot.outstanding_request_id is not None):
            raise ValueError("Snapshot is inconsistent: CALCULATING requires an outstanding request id")
        if snapshot.settling_request_id is not None and (
            snapshot.settling_request_id != snapshot.outstanding_request_id or snapshot.settling_winner is None
        ):
            raise ValueError("Snapshot is inconsistent: an unsettled payout must name the outstanding request")
        round_ = Round(
            last_draw_timestamp=snapshot.last_draw_timestamp,
            state=snapshot.state,
            players=list(snapshot.players),
            pool_balance=snapshot.pool_balance,
            outstanding_request_id=snapshot.outstanding_request_id,
            requested_at=snapshot.requested_at,
            recent_winner=snapshot.recent_winner,
            settling_request_id=snapshot.settling_request_id,
            settling_winner=snapshot.settling_winner,
        )
        return cls(settings, oracle, funds, round_=round_, **kwargs)

    # ------------------------------------------------------------------ #
    # Participant entry point
    # ------------------------------------------------------------------ #

    def enter(self, identity: str, paid_amount: int) -> None:
        with self._lock:
            with self._mutation("enter"):
                self._ledger.admit(identity, int(paid_amount))
                logger.info(
                    "Entered %s paid=%s players=%s pool=%s",
                    identity,
                    paid_amount,
                    self._ledger.get_player_count(),
                    self._round.pool_balance,
                )
            self.events.emit(Entered(identity))

    # ------------------------------------------------------------------ #
    # Automation entry points
    # ------------------------------------------------------------------ #

    def check_upkeep(self, now: Optional[float] = None) -> Tuple[bool, UpkeepDiagnostics]:
        with self._lock:
            return check_upkeep(self._round, self._settings.interval_seconds, self._now(now))

    def perform_upkeep(self, now: Optional[float] = None) -> int:
        with self._lock:
            with self._mutation("perform_upkeep"):
                timestamp = self._now(now)
                needed, diagnostics = check_upkeep(self._round, self._settings.interval_seconds, timestamp)
                if not needed:
                    raise UpkeepNotNeeded(diagnostics)
                # Nothing is written until the oracle has accepted the request.
                request_id = self._coordinator.request()
                self._round.outstanding_request_id = request_id
                self._round.requested_at = timestamp
                self._round.state = RaffleState.CALCULATING
                logger.info(
                    "Randomness requested: request=%s players=%s pool=%s",
                    request_id,
                    diagnostics.player_count,
                    diagnostics.balance,
                )
            self.events.emit(RandomnessRequested(request_id))
            return request_id

    def rerequest_randomness(self, now: Optional[float] = None) -> int:
        """Replace a stalled request with a fresh one.

        Disabled unless ``rerequest_grace_seconds`` is configured. The
        replaced request id is no longer honoured.
        """
        grace = self._settings.rerequest_grace_seconds
        with self._lock:
            with self._mutation("rerequest_randomness"):
                round_ = self._round
                if grace is None:
                    raise RerequestNotAllowed("Re-requesting randomness is disabled")
                if round_.settling_request_id is not None:
                    raise PayoutInDoubt(round_.settling_request_id)
                if round_.state != RaffleState.CALCULATING or round_.outstanding_request_id is None:
                    raise RerequestNotAllowed("No randomness request is outstanding")
                timestamp = self._now(now)
                requested_at = round_.requested_at if round_.requested_at is not None else round_.last_draw_timestamp
                waited = timestamp - requested_at
                if waited < grace:
                    raise RerequestNotAllowed(
                        f"Request {round_.outstanding_request_id} is only {waited:.0f}s old; grace is {grace}s"
                    )
                stale_id = round_.outstanding_request_id
                request_id = self._coordinator.request()
                round_.outstanding_request_id = request_id
                round_.requested_at = timestamp
                logger.warning("Randomness re-requested: stale=%s new=%s", stale_id, request_id)
            self.events.emit(RandomnessRequested(request_id))
            return request_id

    # ------------------------------------------------------------------ #
    # Oracle callback
    # ------------------------------------------------------------------ #

    def fulfill_random_words(
        self,
        caller: Optional[str],
        request_id: int,
        random_words: Sequence[int],
        now: Optional[float] = None,
    ) -> str:
        with self._lock:
            with self._mutation("fulfill_random_words"):
                round_ = self._round
                if round_.settling_request_id is not None:
                    raise PayoutInDoubt(round_.settling_request_id)
                try:
                    word = self._coordinator.verify(round_, caller, request_id, random_words)
                except AuthenticityFailed as exc:
                    logger.warning("Rejected randomness callback: %s", exc)
                    raise

                index = select_winner(word, round_.players)
                winner = round_.players[index]
                amount = round_.pool_balance
                self._mark_settling(winner)
                try:
                    self._payout.pay(winner, amount)
                except TransferFailed as exc:
                    self._clear_settling()
                    logger.warning("Payout for request %s failed; round stays CALCULATING: %s", request_id, exc)
                    raise

                self._commit_draw(winner, self._now(now))
                logger.info("Winner picked: %s (index %s) paid=%s request=%s", winner, index, amount, request_id)
            self.events.emit(WinnerPicked(winner))
            return winner

    def resolve_payout(self, paid: bool, now: Optional[float] = None) -> Optional[str]:
        """Settle a round restored while its payout was in flight.

        ``paid=True`` records the pending winner and opens the next round.
        ``paid=False`` drops the marker so the outstanding request can be
        fulfilled (or re-requested) again. Returns the winner when paid.
        """
        with self._lock:
            with self._mutation("resolve_payout"):
                round_ = self._round
                if round_.settling_request_id is None:
                    raise PreconditionFailed("No payout is awaiting resolution")
                request_id = round_.settling_request_id
                winner = round_.settling_winner
                if not paid:
                    self._clear_settling()
                    logger.warning(
                        "Payout for request %s marked as not made; request %s is honoured again",
                        request_id,
                        round_.outstanding_request_id,
                    )
                    return None
                self._commit_draw(winner, self._now(now))
                logger.warning("Payout for request %s marked as made to %s", request_id, winner)
            self.events.emit(WinnerPicked(winner))
            return winner

    # ------------------------------------------------------------------ #
    # Read accessors
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> RaffleState:
        return self._round.state

    @property
    def entry_fee(self) -> int:
        return self._settings.entry_fee

    @property
    def interval_seconds(self) -> int:
        return self._settings.interval_seconds

    @property
    def settings(self) -> RaffleSettings:
        return self._settings

    @property
    def coordinator_address(self) -> str:
        return self._coordinator.authorized_caller

    @property
    def recent_winner(self) -> Optional[str]:
        return self._round.recent_winner

    @property
    def last_draw_timestamp(self) -> float:
        return self._round.last_draw_timestamp

    @property
    def outstanding_request_id(self) -> Optional[int]:
        return self._round.outstanding_request_id

    @property
    def pool_balance(self) -> int:
        return self._round.pool_balance

    @property
    def players(self) -> Tuple[str, ...]:
        with self._lock:
            return self._ledger.players

    def get_player(self, index: int) -> str:
        with self._lock:
            return self._ledger.get_player(index)

    def get_player_count(self) -> int:
        with self._lock:
            return self._ledger.get_player_count()

    def snapshot(self) -> RoundSnapshot:
        with self._lock:
            return self._snapshot()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _snapshot(self) -> RoundSnapshot:
        round_ = self._round
        return RoundSnapshot(
            state=round_.state,
            players=tuple(round_.players),
            pool_balance=round_.pool_balance,
            last_draw_timestamp=round_.last_draw_timestamp,
            outstanding_request_id=round_.outstanding_request_id,
            requested_at=round_.requested_at,
            recent_winner=round_.recent_winner,
            settling_request_id=round_.settling_request_id,
            settling_winner=round_.settling_winner,
        )

    def _mark_settling(self, winner: str) -> None:
        round_ = self._round
        round_.settling_request_id = round_.outstanding_request_id
        round_.settling_winner = winner
        if self._checkpoint is None:
            return
        try:
            self._checkpoint(self._snapshot())
        except Exception:
            self._clear_settling()
            logger.exception("Could not record payout start for request %s", round_.outstanding_request_id)
            raise

    def _clear_settling(self) -> None:
        self._round.settling_request_id = None
        self._round.settling_winner = None

    def _commit_draw(self, winner: str, timestamp: float) -> None:
        round_ = self._round
        round_.recent_winner = winner
        self._ledger.reset()
        round_.last_draw_timestamp = max(timestamp, round_.last_draw_timestamp)
        round_.outstanding_request_id = None
        round_.requested_at = None
        self._clear_settling()
        round_.state = RaffleState.OPEN

    @contextmanager
    def _mutation(self, operation: str) -> Iterator[None]:
        if self._busy:
            raise ReentrantCall(f"{operation} called while another raffle operation is in progress")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False
