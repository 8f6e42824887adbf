from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Protocol, Set

from .chain import TransactionSigner

logger = logging.getLogger("raffle.funds")


class FundsTransfer(Protocol):
    def transfer(self, recipient: str, amount: int) -> bool:
        ...


class InMemoryFunds:
    """Balances kept in process; recipients listed in ``refusing`` cannot be paid."""

    def __init__(self, refusing: Optional[Iterable[str]] = None) -> None:
        self._balances: Dict[str, int] = {}
        self._refusing: Set[str] = {addr.lower() for addr in (refusing or ())}

    def refuse(self, recipient: str) -> None:
        self._refusing.add(recipient.lower())

    def accept(self, recipient: str) -> None:
        self._refusing.discard(recipient.lower())

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity.lower(), 0)

    def transfer(self, recipient: str, amount: int) -> bool:
        key = recipient.lower()
        if key in self._refusing:
            return False
        self._balances[key] = self._balances.get(key, 0) + int(amount)
        return True


class Web3FundsTransfer:
    """Native value transfer from a treasury account."""

    def __init__(self, signer: TransactionSigner) -> None:
        self._signer = signer

    def transfer(self, recipient: str, amount: int) -> bool:
        meta = self._signer.send_value(recipient, amount)
        if meta["status"] != 1:
            logger.warning("Value transfer to %s reverted: %s", recipient, meta["tx_hash"])
            return False
        logger.info("Paid %s to %s tx=%s", amount, recipient, meta["tx_hash"])
        return True
