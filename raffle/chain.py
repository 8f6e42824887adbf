from __future__ import annotations

import math
from typing import Any, Dict, Optional

from web3 import Web3

DEFAULT_RECEIPT_TIMEOUT = 180


def connect(rpc_url: str) -> Web3:
    web3 = Web3(Web3.HTTPProvider(rpc_url))
    if not web3.is_connected():
        raise ConnectionError(f"Cannot connect to RPC endpoint: {rpc_url}")
    return web3


class TransactionSigner:
    """Signs and broadcasts transactions from a single local account."""

    def __init__(self, web3: Web3, private_key: str, chain_id: Optional[int] = None) -> None:
        self._web3 = web3
        self._account = web3.eth.account.from_key(private_key)
        self._chain_id = chain_id

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def web3(self) -> Web3:
        return self._web3

    def _resolve_chain_id(self) -> Optional[int]:
        if self._chain_id is not None:
            return self._chain_id
        try:
            return int(self._web3.eth.chain_id)
        except Exception:  # pragma: no cover - node without eth_chainId
            return None

    def send_contract_call(self, fn, tx_params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        tx_params = dict(tx_params or {})
        tx_params.setdefault("from", self.address)

        try:
            gas_estimate = fn.estimate_gas(tx_params)
        except Exception:  # pragma: no cover - rely on conservative gas limit if estimation fails
            gas_estimate = 350000
        gas_limit = max(int(math.ceil(gas_estimate * 1.2)), 250000)

        tx = fn.build_transaction(
            {
                **tx_params,
                "nonce": self._web3.eth.get_transaction_count(self.address),
                "gas": gas_limit,
                "gasPrice": self._web3.eth.gas_price,
            }
        )
        return self._sign_and_wait(tx)

    def send_value(self, recipient: str, amount: int) -> Dict[str, Any]:
        tx = {
            "from": self.address,
            "to": Web3.to_checksum_address(recipient),
            "value": int(amount),
            "nonce": self._web3.eth.get_transaction_count(self.address),
            "gas": 21000,
            "gasPrice": self._web3.eth.gas_price,
        }
        return self._sign_and_wait(tx)

    def _sign_and_wait(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        chain_id = self._resolve_chain_id()
        if chain_id is not None:
            tx["chainId"] = chain_id

        signed = self._account.sign_transaction(tx)
        tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self._web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=DEFAULT_RECEIPT_TIMEOUT, poll_latency=2
        )
        return {"tx_hash": tx_hash.hex(), "receipt": receipt, "status": int(receipt["status"])}
