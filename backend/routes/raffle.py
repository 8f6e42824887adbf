from __future__ import annotations

import hmac
from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from raffle.errors import UpkeepNotNeeded

from ..config import load_settings
from ..schemas import (
    EntryRequest,
    EntryResponse,
    FulfillmentRequest,
    FulfillmentResponse,
    RaffleStatusResponse,
    UpkeepPerformedResponse,
    UpkeepResponse,
)
from ..services.raffle import get_raffle_service

bp = Blueprint("raffle", __name__)


def _callback_caller() -> Optional[str]:
    """Resolve who is calling the fulfillment endpoint.

    Only a request carrying the configured oracle token speaks for the
    coordinator. Anything else has no caller identity at all.
    """
    settings = load_settings()
    expected = settings.oracle_callback_token
    provided = request.headers.get("X-Oracle-Token")
    if expected and provided and hmac.compare_digest(provided, expected):
        return settings.raffle.vrf.coordinator_address
    return None


@bp.get("")
def get_status():
    snapshot = get_raffle_service().status()
    return jsonify(RaffleStatusResponse(**snapshot.to_dict()).dict())


@bp.get("/players/<int:index>")
def get_player(index: int):
    raffle = get_raffle_service().raffle
    try:
        identity = raffle.get_player(index)
    except IndexError:
        return jsonify({"error": "player not found"}), 404
    return jsonify({"index": index, "identity": identity})


@bp.post("/entries")
def enter():
    payload = request.get_json(force=True, silent=True) or {}
    data = EntryRequest(**payload)

    snapshot = get_raffle_service().enter(data.identity, data.amount)
    response = EntryResponse(
        identity=data.identity,
        player_count=len(snapshot.players),
        pool_balance=str(snapshot.pool_balance),
    )
    return jsonify(response.dict()), 201


@bp.get("/upkeep")
def check_upkeep():
    needed, diagnostics = get_raffle_service().check_upkeep()
    return jsonify(UpkeepResponse(upkeep_needed=needed, diagnostics=diagnostics.to_dict()).dict())


@bp.post("/upkeep")
def perform_upkeep():
    service = get_raffle_service()
    try:
        request_id = service.perform_upkeep()
    except UpkeepNotNeeded as exc:
        current_app.logger.info("Upkeep refused: %s", exc)
        return jsonify({"error": str(exc), "diagnostics": exc.diagnostics.to_dict()}), 409

    response = UpkeepPerformedResponse(request_id=str(request_id), state=service.raffle.state.name)
    return jsonify(response.dict())


@bp.post("/fulfill")
def fulfill():
    if not load_settings().oracle_callback_token:
        current_app.logger.warning("Randomness callback refused: ORACLE_CALLBACK_TOKEN is not configured")
        return jsonify({"error": "randomness callbacks are disabled", "type": "UnauthorizedCaller"}), 403

    payload = request.get_json(force=True, silent=True) or {}
    data = FulfillmentRequest(**payload)

    service = get_raffle_service()
    winner = service.fulfill_random_words(_callback_caller(), data.request_id, data.random_words)
    response = FulfillmentResponse(
        request_id=str(data.request_id),
        winner=winner,
        state=service.raffle.state.name,
    )
    return jsonify(response.dict())


@bp.get("/events")
def list_events():
    return jsonify(get_raffle_service().events())
