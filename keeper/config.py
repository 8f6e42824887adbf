from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

TRUTHY = {"1", "true", "yes", "on"}


def _flag(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def _positive_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    value = int(raw)
    if value <= 0:
        raise RuntimeError(f"{key} must be a positive integer, got {raw!r}")
    return value


def _api_url() -> str:
    url = os.getenv("RAFFLE_API_URL", "").strip()
    if not url:
        raise RuntimeError("Missing required environment variable: RAFFLE_API_URL")
    if urlparse(url).scheme not in ("http", "https"):
        raise RuntimeError(f"RAFFLE_API_URL must be an http(s) URL, got {url!r}")
    return url.rstrip("/")


@dataclass(frozen=True)
class KeeperSettings:
    """Where the keeper finds the raffle and how often it asks."""

    raffle_api_url: str
    poll_interval_seconds: int = 30
    submit_only_once: bool = False
    state_file: str = "keeper_state.json"
    timeout_seconds: int = 10

    def copy(self, **updates) -> "KeeperSettings":
        return replace(self, **updates)


def load_from_environment() -> KeeperSettings:
    return KeeperSettings(
        raffle_api_url=_api_url(),
        poll_interval_seconds=_positive_int("POLL_INTERVAL_SECONDS", 30),
        submit_only_once=_flag("SUBMIT_ONCE"),
        state_file=os.getenv("STATE_FILE", "keeper_state.json"),
        timeout_seconds=_positive_int("REQUEST_TIMEOUT_SECONDS", 10),
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> KeeperSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    elif pathlib.Path(".env").exists():
        load_dotenv(".env")
    return load_from_environment()
