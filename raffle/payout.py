from __future__ import annotations

import logging

from .errors import TransferFailed
from .funds import FundsTransfer

logger = logging.getLogger("raffle.payout")


class PayoutEngine:
    def __init__(self, funds: FundsTransfer) -> None:
        self._funds = funds

    def pay(self, winner: str, amount: int) -> None:
        """Move ``amount`` to ``winner`` or raise ``TransferFailed``."""
        try:
            delivered = self._funds.transfer(winner, amount)
        except TransferFailed:
            raise
        except Exception as exc:
            logger.warning("Transfer to %s raised: %s", winner, exc)
            raise TransferFailed(winner, amount, str(exc)) from exc
        if not delivered:
            raise TransferFailed(winner, amount, "recipient refused the transfer")
