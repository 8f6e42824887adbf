from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify

from ..config import load_settings

bp = Blueprint("config", __name__)


def _get_raffle_metadata() -> Dict[str, Any]:
    settings = load_settings()
    raffle = settings.raffle
    return {
        "entry_fee_wei": str(raffle.entry_fee),
        "interval_seconds": raffle.interval_seconds,
        "vrf_mode": settings.web3.vrf_mode,
        "coordinator_address": raffle.vrf.coordinator_address,
        "key_hash": raffle.vrf.key_hash,
        "subscription_id": str(raffle.vrf.subscription_id),
        "request_confirmations": raffle.vrf.request_confirmations,
        "callback_gas_limit": raffle.vrf.callback_gas_limit,
        "num_words": raffle.vrf.num_words,
        "rerequest_grace_seconds": raffle.rerequest_grace_seconds,
    }


@bp.get("/config")
def get_config():
    return jsonify(_get_raffle_metadata())
