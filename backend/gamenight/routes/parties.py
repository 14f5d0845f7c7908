from __future__ import annotations

import structlog
from flask import Blueprint, current_app, jsonify, request

from ..errors import PartyCodeExhausted
from ..game import service
from ..game.dispatch import handler_for, is_supported
from ..realtime.handlers import ensure_liveness_task

LOGGER = structlog.get_logger(__name__)

bp = Blueprint("parties", __name__)


def _unsupported(game_kind: str):
    return jsonify({"error": f"Game type '{game_kind}' not supported"}), 404


@bp.post("/game/<game_kind>/create-party")
def create_party(game_kind: str):
    if not is_supported(game_kind):
        return _unsupported(game_kind)

    payload = request.get_json(silent=True) or {}
    creator_id = str(payload.get("id", "")).strip()
    name = str(payload.get("name", "")).strip()
    if not creator_id or not name:
        return jsonify({"error": "id and name are required"}), 400

    try:
        coordinator = service.create_party(game_kind, creator_id)
    except PartyCodeExhausted as exc:
        return jsonify({"error": exc.message}), 500

    socketio = current_app.extensions.get("socketio")
    if socketio is not None:
        ensure_liveness_task(socketio, coordinator, current_app.config.get("LIVENESS_INTERVAL_SEC", 30))

    LOGGER.info("parties.created", party=coordinator.party_id, creator=creator_id, name=name)
    return jsonify({"partyCode": coordinator.party_code})


@bp.get("/game/<game_kind>/party/<party_code>")
def get_party(game_kind: str, party_code: str):
    if not is_supported(game_kind):
        return _unsupported(game_kind)

    coordinator = service.find_or_restore(game_kind, party_code)
    if coordinator is None:
        return jsonify({"error": "party_not_found"}), 404

    # Lobby summary only; a per-player view needs a registered connection.
    handler = handler_for(game_kind)
    summary = handler.public_view(coordinator.room, coordinator.host_id())
    summary["connections"] = coordinator.connection_count()
    return jsonify(summary)
