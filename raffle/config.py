from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, field, replace
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from web3 import Web3

ZERO_ADDRESS = "0x" + "0" * 40
ZERO_KEY_HASH = "0x" + "0" * 64


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _optional_int_from_env(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


def _require_env(key: str) -> str:
    value = os.getenv(key)
    if value is None or value == "":
        raise RuntimeError(f"Missing required environment variable: {key}")
    return value


def _entry_fee_from_env() -> int:
    wei = os.getenv("RAFFLE__ENTRY_FEE_WEI")
    if wei:
        return int(wei)
    ether = os.getenv("RAFFLE__ENTRY_FEE_ETHER")
    if ether:
        return int(Web3.to_wei(Decimal(ether), "ether"))
    raise RuntimeError("Missing required environment variable: RAFFLE__ENTRY_FEE_WEI")


@dataclass(frozen=True)
class VrfSettings:
    coordinator_address: str = ZERO_ADDRESS
    key_hash: str = ZERO_KEY_HASH
    subscription_id: int = 0
    request_confirmations: int = 3
    callback_gas_limit: int = 500000
    num_words: int = 1


@dataclass(frozen=True)
class RaffleSettings:
    entry_fee: int
    interval_seconds: int
    vrf: VrfSettings = field(default_factory=VrfSettings)
    # Optional stuck-draw recovery; None keeps the base behaviour (no re-request).
    rerequest_grace_seconds: Optional[int] = None

    def __post_init__(self) -> None:
        if self.entry_fee <= 0:
            raise ValueError("entry_fee must be positive")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        if self.vrf.num_words < 1:
            raise ValueError("num_words must be at least 1")

    def copy(self, **updates) -> "RaffleSettings":
        return replace(self, **updates)


def load_from_environment() -> RaffleSettings:
    vrf = VrfSettings(
        coordinator_address=_require_env("VRF__COORDINATOR_ADDRESS"),
        key_hash=os.getenv("VRF__KEY_HASH", ZERO_KEY_HASH),
        subscription_id=_int_from_env(os.getenv("VRF__SUBSCRIPTION_ID"), 0),
        request_confirmations=_int_from_env(os.getenv("VRF__REQUEST_CONFIRMATIONS"), 3),
        callback_gas_limit=_int_from_env(os.getenv("VRF__CALLBACK_GAS_LIMIT"), 500000),
        num_words=_int_from_env(os.getenv("VRF__NUM_WORDS"), 1),
    )
    return RaffleSettings(
        entry_fee=_entry_fee_from_env(),
        interval_seconds=_int_from_env(os.getenv("RAFFLE__INTERVAL_SECONDS"), 30),
        vrf=vrf,
        rerequest_grace_seconds=_optional_int_from_env(os.getenv("RAFFLE__REREQUEST_GRACE_SECONDS")),
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> RaffleSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
