from __future__ import annotations

from flask import Blueprint, jsonify

from ..game import service
from ..game.dispatch import supported_games
from ..realtime.handlers import session_count

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    return jsonify(
        {
            "status": "ok",
            "parties": len(service.list_parties()),
            "connections": session_count(),
            "games": supported_games(),
        }
    )
