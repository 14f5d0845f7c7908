from __future__ import annotations

from threading import RLock
from typing import Any

import structlog
from flask import request
from flask_socketio import ConnectionRefusedError, SocketIO

from ..errors import PartyError, PartyNotFound, UnsupportedGame
from ..game import service
from ..game.coordinator import PartyCoordinator
from ..game.dispatch import is_supported, supported_games
from .connections import SocketConnection
from .protocol import error_message, parse_message

LOGGER = structlog.get_logger(__name__)

_lock = RLock()
_sessions: dict[str, tuple[PartyCoordinator, SocketConnection]] = {}
_liveness_tasks: dict[str, bool] = {}


def _handshake_params(auth: Any) -> tuple[str, str]:
    data = auth if isinstance(auth, dict) else {}
    kind = data.get("gameKind") or request.args.get("gameKind", "")
    code = data.get("partyCode") or request.args.get("partyCode", "")
    return str(kind).strip().lower(), str(code).strip()


def _refuse(error: PartyError) -> ConnectionRefusedError:
    return ConnectionRefusedError(error_message(error.reason, error.message))


def ensure_liveness_task(socketio: SocketIO, coordinator: PartyCoordinator, interval_sec: float) -> None:
    """One sweep loop per party, stopped once the coordinator closes."""

    if interval_sec <= 0:
        return
    party_id = coordinator.party_id
    with _lock:
        if _liveness_tasks.get(party_id):
            return
        _liveness_tasks[party_id] = True

    def _runner() -> None:
        try:
            while not coordinator.closed:
                socketio.sleep(interval_sec)
                if coordinator.sweep():
                    service.forget_party(coordinator)
                    break
        finally:
            with _lock:
                _liveness_tasks.pop(party_id, None)
            LOGGER.debug("realtime.liveness_stopped", party=party_id)

    socketio.start_background_task(_runner)


def session_count() -> int:
    with _lock:
        return len(_sessions)


def register_socketio_handlers(socketio: SocketIO, liveness_interval_sec: float = 30) -> None:
    @socketio.on("connect")
    def on_connect(auth=None):
        kind, code = _handshake_params(auth)
        log = LOGGER.bind(sid=request.sid, game=kind, party_code=code)

        if not is_supported(kind):
            log.info("realtime.unsupported_game")
            raise _refuse(UnsupportedGame(f"Game type '{kind}' not supported ({', '.join(supported_games())})"))

        coordinator = service.find_or_restore(kind, code)
        if coordinator is None:
            log.info("realtime.party_not_found")
            raise _refuse(PartyNotFound())

        connection = SocketConnection(socketio, request.sid)
        with _lock:
            _sessions[request.sid] = (coordinator, connection)
        coordinator.attach(connection)
        ensure_liveness_task(socketio, coordinator, liveness_interval_sec)
        log.debug("realtime.connected")

    def on_message(data):
        with _lock:
            session = _sessions.get(request.sid)
        if session is None:
            return
        coordinator, connection = session

        message = parse_message(data)
        if message is None:
            return
        coordinator.handle_message(connection, message)

    socketio.on_event("message", on_message)
    socketio.on_event("json", on_message)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        with _lock:
            session = _sessions.pop(request.sid, None)
        if session is None:
            return
        coordinator, connection = session
        connection.mark_closed()
        coordinator.detach(connection.id)
