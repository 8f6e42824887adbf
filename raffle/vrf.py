from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

from web3 import Web3

from .chain import TransactionSigner

logger = logging.getLogger("raffle.vrf")

MOCK_COORDINATOR_ADDRESS = "0x" + "0" * 39 + "1"

# Minimal VRF coordinator (v2) interface: the request call and the event carrying its id.
VRF_COORDINATOR_ABI = [
    {
        "type": "function",
        "name": "requestRandomWords",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "keyHash", "type": "bytes32"},
            {"name": "subId", "type": "uint64"},
            {"name": "minimumRequestConfirmations", "type": "uint16"},
            {"name": "callbackGasLimit", "type": "uint32"},
            {"name": "numWords", "type": "uint32"},
        ],
        "outputs": [{"name": "requestId", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "RandomWordsRequested",
        "anonymous": False,
        "inputs": [
            {"name": "keyHash", "type": "bytes32", "indexed": True},
            {"name": "requestId", "type": "uint256", "indexed": False},
            {"name": "preSeed", "type": "uint256", "indexed": False},
            {"name": "subId", "type": "uint64", "indexed": True},
            {"name": "minimumRequestConfirmations", "type": "uint16", "indexed": False},
            {"name": "callbackGasLimit", "type": "uint32", "indexed": False},
            {"name": "numWords", "type": "uint32", "indexed": False},
            {"name": "sender", "type": "address", "indexed": True},
        ],
    },
]


class RandomnessCoordinator(Protocol):
    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        ...


class RandomnessConsumer(Protocol):
    def fulfill_random_words(self, caller: str, request_id: int, random_words: Sequence[int]) -> None:
        ...


@dataclass(frozen=True)
class RandomWordsRequest:
    request_id: int
    key_hash: str
    subscription_id: int
    request_confirmations: int
    callback_gas_limit: int
    num_words: int


def derive_random_words(request_id: int, num_words: int) -> List[int]:
    """Deterministic words as a mock coordinator produces them: keccak(requestId, i)."""
    return [
        int.from_bytes(Web3.solidity_keccak(["uint256", "uint256"], [request_id, i]), "big")
        for i in range(num_words)
    ]


class MockVrfCoordinator:
    """In-process coordinator for local runs and tests.

    Request ids start at ``first_request_id`` and increase. A request can be
    fulfilled once; like an on-chain coordinator it is consumed before the
    consumer is called, even if the consumer then rejects the callback.
    """

    def __init__(self, address: str = MOCK_COORDINATOR_ADDRESS, first_request_id: int = 1) -> None:
        self.address = address
        self._next_request_id = first_request_id
        self._pending: Dict[int, RandomWordsRequest] = {}
        self.requests: List[RandomWordsRequest] = []

    def resume(self, request_id: int, num_words: int) -> None:
        """Re-register a request that was outstanding before a restart."""
        self._next_request_id = max(self._next_request_id, request_id + 1)
        self._pending[request_id] = RandomWordsRequest(
            request_id=request_id,
            key_hash="",
            subscription_id=0,
            request_confirmations=0,
            callback_gas_limit=0,
            num_words=num_words,
        )
        logger.debug("Mock coordinator resumed request %s", request_id)

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        request = RandomWordsRequest(
            request_id=self._next_request_id,
            key_hash=key_hash,
            subscription_id=subscription_id,
            request_confirmations=request_confirmations,
            callback_gas_limit=callback_gas_limit,
            num_words=num_words,
        )
        self._next_request_id += 1
        self._pending[request.request_id] = request
        self.requests.append(request)
        logger.debug("Mock coordinator accepted request %s", request.request_id)
        return request.request_id

    @property
    def last_request_id(self) -> Optional[int]:
        return self.requests[-1].request_id if self.requests else None

    def is_pending(self, request_id: int) -> bool:
        return request_id in self._pending

    def fulfill_random_words(
        self,
        request_id: int,
        consumer: RandomnessConsumer,
        words: Optional[Sequence[int]] = None,
    ) -> List[int]:
        request = self._pending.pop(request_id, None)
        if request is None:
            raise ValueError(f"Nonexistent randomness request: {request_id}")
        random_words = list(words) if words is not None else derive_random_words(request_id, request.num_words)
        consumer.fulfill_random_words(self.address, request_id, random_words)
        return random_words


class Web3VrfCoordinator:
    """Submits ``requestRandomWords`` to an on-chain coordinator contract."""

    def __init__(self, signer: TransactionSigner, coordinator_address: str) -> None:
        self._signer = signer
        self._contract = signer.web3.eth.contract(
            address=Web3.to_checksum_address(coordinator_address),
            abi=VRF_COORDINATOR_ABI,
        )

    @property
    def address(self) -> str:
        return self._contract.address

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        fn = self._contract.functions.requestRandomWords(
            Web3.to_bytes(hexstr=key_hash),
            int(subscription_id),
            int(request_confirmations),
            int(callback_gas_limit),
            int(num_words),
        )
        meta = self._signer.send_contract_call(fn)
        if meta["status"] != 1:
            raise RuntimeError(f"requestRandomWords reverted: {meta['tx_hash']}")
        request_id = self._extract_request_id(meta["receipt"])
        if request_id is None:
            raise RuntimeError("Unable to determine request id from transaction logs.")
        logger.info("Randomness requested on-chain: request=%s tx=%s", request_id, meta["tx_hash"])
        return request_id

    def _extract_request_id(self, receipt) -> Optional[int]:
        events = self._contract.events.RandomWordsRequested().process_receipt(receipt)
        if events:
            return int(events[0]["args"]["requestId"])
        return None
