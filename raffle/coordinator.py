from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import VrfSettings
from .errors import InvalidRandomWords, RequestMismatch, UnauthorizedCaller
from .types import Round
from .vrf import RandomnessCoordinator

logger = logging.getLogger("raffle.coordinator")


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.lower() == right.lower()


class RandomnessRequestCoordinator:
    """Issues the round's randomness request and authenticates its callback."""

    def __init__(self, oracle: RandomnessCoordinator, vrf: VrfSettings) -> None:
        self._oracle = oracle
        self._vrf = vrf

    @property
    def authorized_caller(self) -> str:
        return self._vrf.coordinator_address

    def request(self) -> int:
        vrf = self._vrf
        request_id = self._oracle.request_random_words(
            vrf.key_hash,
            vrf.subscription_id,
            vrf.request_confirmations,
            vrf.callback_gas_limit,
            vrf.num_words,
        )
        return int(request_id)

    def verify(self, round_: Round, caller: Optional[str], request_id: int, random_words: Sequence[int]) -> int:
        """Return the word to draw with, or raise an ``AuthenticityFailed``.

        Only the first word is used; coordinators may deliver more.
        """
        if not _same_address(caller, self._vrf.coordinator_address):
            raise UnauthorizedCaller(caller)
        outstanding = round_.outstanding_request_id
        if outstanding is None or int(request_id) != outstanding:
            raise RequestMismatch(int(request_id), outstanding)
        if not random_words:
            raise InvalidRandomWords(f"Request {request_id} delivered no random words")
        word = int(random_words[0])
        if word < 0:
            raise InvalidRandomWords(f"Request {request_id} delivered a negative random word")
        return word
