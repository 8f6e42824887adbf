from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from ..config import load_settings
from ..schemas import (
    FulfillmentResponse,
    MockFulfillmentRequest,
    PayoutResolutionRequest,
    PayoutResolutionResponse,
    UpkeepPerformedResponse,
)
from ..services.raffle import MockFulfillmentUnavailable, get_raffle_service

bp = Blueprint("admin", __name__)


def _require_admin() -> bool:
    settings = load_settings()
    api_key = settings.admin_api_key
    if api_key:
        provided = request.headers.get("X-Admin-Token")
        if not provided or not hmac.compare_digest(provided, api_key):
            return False
    return True


@bp.before_request
def verify_admin():
    if not _require_admin():
        return jsonify({"error": "unauthorized"}), 401
    return None


@bp.post("/rerequest")
def rerequest_randomness():
    service = get_raffle_service()
    request_id = service.rerequest_randomness()
    current_app.logger.warning("Admin re-requested randomness; new request %s", request_id)
    response = UpkeepPerformedResponse(request_id=str(request_id), state=service.raffle.state.name)
    return jsonify(response.dict())


@bp.post("/mock/fulfill")
def mock_fulfill():
    payload = request.get_json(force=True, silent=True) or {}
    data = MockFulfillmentRequest(**payload)

    service = get_raffle_service()
    try:
        request_id, winner = service.mock_fulfill(data.random_words)
    except MockFulfillmentUnavailable as exc:
        return jsonify({"error": str(exc)}), 409

    response = FulfillmentResponse(
        request_id=str(request_id),
        winner=winner,
        state=service.raffle.state.name,
    )
    return jsonify(response.dict())


@bp.post("/payout/resolve")
def resolve_payout():
    payload = request.get_json(force=True, silent=True) or {}
    data = PayoutResolutionRequest(**payload)

    service = get_raffle_service()
    winner = service.resolve_payout(data.paid)
    current_app.logger.warning("Admin resolved in-flight payout: paid=%s winner=%s", data.paid, winner)
    response = PayoutResolutionResponse(winner=winner, state=service.raffle.state.name)
    return jsonify(response.dict())
