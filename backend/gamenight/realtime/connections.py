from __future__ import annotations

from typing import Any

from flask_socketio import SocketIO


class SocketConnection:
    """A Socket.IO client as a coordinator connection.

    ``close`` is idempotent. The disconnect handler calls ``mark_closed`` when
    the client goes away on its own.
    """

    def __init__(self, socketio: SocketIO, sid: str) -> None:
        self._socketio = socketio
        self.id = sid
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, message: dict[str, Any]) -> None:
        if not self._open:
            return
        self._socketio.send(message, to=self.id)

    def mark_closed(self) -> None:
        self._open = False

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self._socketio.server.disconnect(self.id, namespace="/")

    def __repr__(self) -> str:
        return f"SocketConnection({self.id!r}, open={self._open})"
