from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from raffle.config import RaffleSettings, load_from_environment

VRF_MODES = ("mock", "web3")


@dataclass(frozen=True)
class FlaskSettings:
    secret_key: str = "raffle-dev-secret"


@dataclass(frozen=True)
class Web3Settings:
    vrf_mode: str = "mock"
    rpc_url: Optional[str] = None
    signer_key: Optional[str] = None
    chain_id: Optional[int] = None


@dataclass(frozen=True)
class AppSettings:
    flask: FlaskSettings
    web3: Web3Settings
    raffle: RaffleSettings
    database_url: str
    admin_api_key: Optional[str]
    oracle_callback_token: Optional[str]
    event_log_size: int = 1000


def _require(key: str) -> str:
    value = os.getenv(key)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {key}")
    return value


@lru_cache(maxsize=1)
def load_settings(dotenv_path: Optional[str] = None) -> AppSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        load_dotenv()

    flask_settings = FlaskSettings(
        secret_key=os.getenv("FLASK_SECRET_KEY", "raffle-dev-secret"),
    )

    vrf_mode = os.getenv("VRF__MODE", "mock").strip().lower()
    if vrf_mode not in VRF_MODES:
        raise RuntimeError(f"VRF__MODE must be one of {', '.join(VRF_MODES)}; got {vrf_mode!r}")
    chain_id = os.getenv("CHAIN_ID")
    web3_settings = Web3Settings(
        vrf_mode=vrf_mode,
        rpc_url=_require("RPC_URL") if vrf_mode == "web3" else os.getenv("RPC_URL"),
        signer_key=_require("SIGNER_PRIVATE_KEY") if vrf_mode == "web3" else os.getenv("SIGNER_PRIVATE_KEY"),
        chain_id=int(chain_id) if chain_id else None,
    )

    return AppSettings(
        flask=flask_settings,
        web3=web3_settings,
        raffle=load_from_environment(),
        database_url=os.getenv("DATABASE_URL", "sqlite:///raffle.db"),
        admin_api_key=os.getenv("ADMIN_API_KEY"),
        oracle_callback_token=os.getenv("ORACLE_CALLBACK_TOKEN"),
        event_log_size=int(os.getenv("EVENT_LOG_SIZE", "1000")),
    )
