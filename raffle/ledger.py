from __future__ import annotations

from typing import Tuple

from .errors import InsufficientPayment, RaffleNotOpen
from .types import RaffleState, Round


class EntryLedger:
    """Participants and pooled entry fees of the current round."""

    def __init__(self, round_: Round, entry_fee: int) -> None:
        self._round = round_
        self._entry_fee = entry_fee

    @property
    def entry_fee(self) -> int:
        return self._entry_fee

    def admit(self, identity: str, paid_amount: int) -> None:
        round_ = self._round
        if round_.state != RaffleState.OPEN:
            raise RaffleNotOpen(round_.state.name)
        if paid_amount < self._entry_fee:
            raise InsufficientPayment(paid_amount, self._entry_fee)
        # Overpayment stays in the pool.
        round_.players.append(identity)
        round_.pool_balance += paid_amount

    def get_player(self, index: int) -> str:
        if index < 0 or index >= len(self._round.players):
            raise IndexError(f"No player at index {index}")
        return self._round.players[index]

    def get_player_count(self) -> int:
        return len(self._round.players)

    @property
    def players(self) -> Tuple[str, ...]:
        return tuple(self._round.players)

    @property
    def pool_balance(self) -> int:
        return self._round.pool_balance

    def reset(self) -> None:
        self._round.players = []
        self._round.pool_balance = 0
