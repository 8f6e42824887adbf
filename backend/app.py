from __future__ import annotations

import json

from flask import Flask, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from raffle.errors import (
    AuthenticityFailed,
    InputRejected,
    PreconditionFailed,
    RaffleError,
    RaffleNotOpen,
    ReentrantCall,
    TransferFailed,
    UnauthorizedCaller,
)

from .config import load_settings
from .db import init_db
from .routes.admin import bp as admin_bp
from .routes.config import bp as config_bp
from .routes.health import bp as health_bp
from .routes.raffle import bp as raffle_bp
from .services.raffle import get_raffle_service

# Most specific first.
ERROR_STATUS = (
    (UnauthorizedCaller, 403),
    (RaffleNotOpen, 409),
    (InputRejected, 400),
    (AuthenticityFailed, 409),
    (PreconditionFailed, 409),
    (ReentrantCall, 409),
    (TransferFailed, 502),
)


def status_for(exc: RaffleError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


def create_app() -> Flask:
    settings = load_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.flask.secret_key
    init_db()
    get_raffle_service()

    app.register_blueprint(health_bp)
    app.register_blueprint(raffle_bp, url_prefix="/raffle")
    app.register_blueprint(admin_bp, url_prefix="/admin/api")
    app.register_blueprint(config_bp)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"error": "invalid request", "details": json.loads(exc.json())}), 400

    @app.errorhandler(RaffleError)
    def handle_raffle_error(exc: RaffleError):
        status = status_for(exc)
        app.logger.warning("Raffle operation rejected (%s): %s", status, exc)
        return jsonify({"error": str(exc), "type": type(exc).__name__}), status

    @app.errorhandler(Exception)
    def handle_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app
