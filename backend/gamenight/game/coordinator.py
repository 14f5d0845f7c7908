"""Per-party room coordinator.

A :class:`PartyCoordinator` owns one party: its live connections, the
canonical :class:`RoomState`, host election, liveness, persistence and the
per-connection broadcast. All of it is serialized behind one re-entrant lock,
so there is a single writer per room.

In-memory state is always replaced before the snapshot is written, and the
snapshot before the relational backup.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import structlog
from pydantic import BaseModel, ValidationError

from ..errors import ConnectionReplaced, GameAlreadyStarted, GameError, PartyError, PersistenceError
from ..realtime.protocol import PING, error_message
from ..storage.backup import BackupStore
from ..storage.snapshots import SnapshotStore
from .dispatch import handler_for, parse_kind
from .models import GameKind, PartyMeta, Player, RoomState, party_id_for

LOGGER = structlog.get_logger(__name__)

ROOM_KEY = "room"
META_KEY = "meta"


def now_ms() -> int:
    return int(time.time() * 1000)


class Connection(Protocol):
    """One client socket as seen by the coordinator."""

    id: str

    @property
    def is_open(self) -> bool:
        ...

    def send(self, message: Dict[str, Any]) -> None:
        ...

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class LivenessSettings:
    disconnect_grace_ms: int = 30_000
    remove_after_ms: int = 60_000
    reconnect_grace_ms: int = 60_000
    room_ttl_ms: int = 24 * 60 * 60 * 1000

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "LivenessSettings":
        return cls(
            disconnect_grace_ms=int(config.get("DISCONNECT_GRACE_SEC", 30)) * 1000,
            remove_after_ms=int(config.get("REMOVE_AFTER_SEC", 60)) * 1000,
            reconnect_grace_ms=int(config.get("RECONNECT_GRACE_SEC", 60)) * 1000,
            room_ttl_ms=int(config.get("ROOM_TTL_SEC", 24 * 60 * 60)) * 1000,
        )


@dataclass
class _Attachment:
    connection: Connection
    player_id: Optional[str] = None


class _RoomContext:
    """The narrow view of a coordinator that game handlers get."""

    def __init__(self, coordinator: "PartyCoordinator", connection: Optional[Connection] = None) -> None:
        self._coordinator = coordinator
        self._connection = connection
        self.rng = coordinator.rng

    def current_room(self) -> RoomState:
        return self._coordinator.room

    def host_id(self) -> Optional[str]:
        return self._coordinator.host_id()

    def persist_state(self, room: RoomState, *, backup: bool = False) -> None:
        self._coordinator.persist_state(room, backup=backup)

    def broadcast(self, *, game_starting: bool = False, game_ending: bool = False) -> None:
        self._coordinator.broadcast(game_starting=game_starting, game_ending=game_ending)

    def reply_error(self, reason: str, message: str = "") -> None:
        if self._connection is not None and self._connection.is_open:
            self._connection.send(error_message(reason, message))


class PartyCoordinator:
    def __init__(
        self,
        game_kind: GameKind | str,
        party_code: str,
        snapshots: SnapshotStore,
        backup: Optional[BackupStore] = None,
        settings: Optional[LivenessSettings] = None,
        clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
    ) -> None:
        kind = parse_kind(game_kind)
        if kind is None:
            raise PartyError(f"Game type '{game_kind}' not supported")
        self.game_kind = kind
        self.party_code = party_code
        self.party_id = party_id_for(kind, party_code)
        self.handler = handler_for(kind)
        self.snapshots = snapshots
        self.backup = backup
        self.settings = settings or LivenessSettings()
        self.clock = clock
        self.rng = rng or random.Random()
        self.closed = False

        self._lock = RLock()
        self._room = RoomState(game_kind=kind, party_code=party_code)
        self._meta = PartyMeta(last_access_at=clock())
        self._connections: Dict[str, _Attachment] = {}
        self.log = LOGGER.bind(party=self.party_id)

    # -- state access ---------------------------------------------------

    @property
    def room(self) -> RoomState:
        """Deep copy of the canonical room state."""

        with self._lock:
            return self._room.model_copy(deep=True)

    @property
    def meta(self) -> PartyMeta:
        with self._lock:
            return self._meta.model_copy()

    def host_id(self) -> Optional[str]:
        """The creator while connected, else the first connected player in roster order."""

        with self._lock:
            first = self._meta.first_host_id
            if first:
                player = self._room.find_player(first)
                if player is not None and player.connected:
                    return first
            for player in self._room.players:
                if player.connected:
                    return player.id
            return None

    def connection_count(self) -> int:
        with self._lock:
            return sum(1 for a in self._connections.values() if a.connection.is_open)

    def player_for(self, connection_id: str) -> Optional[str]:
        with self._lock:
            attachment = self._connections.get(connection_id)
            return attachment.player_id if attachment else None

    # -- persistence ----------------------------------------------------

    def claim_host(self, creator_id: str) -> None:
        """Record the party creator, who is host whenever connected."""

        with self._lock:
            self._meta.first_host_id = creator_id
            self._meta.last_access_at = self.clock()
            self._write_snapshot()
            self._write_backup()
            self.log.info("party.created", creator=creator_id)

    def persist_state(self, room: RoomState, *, backup: bool = False) -> None:
        with self._lock:
            self._room = room.model_copy(deep=True)
            self._write_snapshot()
            if backup:
                self._write_backup()

    def _write_snapshot(self) -> None:
        self.snapshots.put(self.party_id, ROOM_KEY, self._room.model_dump_json(by_alias=True))
        self.snapshots.put(self.party_id, META_KEY, self._meta.model_dump_json(by_alias=True))

    def _write_backup(self) -> None:
        if self.backup is None:
            return
        try:
            self.backup.save(
                self.party_id,
                self.game_kind.value,
                self._room.model_dump_json(by_alias=True),
                first_host_id=self._meta.first_host_id,
            )
        except PersistenceError as exc:
            self.log.warning("party.backup_failed", error=str(exc))

    # -- connections ----------------------------------------------------

    def attach(self, connection: Connection) -> None:
        with self._lock:
            self._connections[connection.id] = _Attachment(connection)
            self._meta.last_access_at = self.clock()
            self.log.debug("party.attached", connection=connection.id)

    def detach(self, connection_id: str) -> None:
        with self._lock:
            attachment = self._connections.pop(connection_id, None)
            if attachment is None or attachment.player_id is None:
                return
            player_id = attachment.player_id
            self.log.info("party.detached", connection=connection_id, player_id=player_id)
            if self._has_open_connection(player_id):
                return
            room = self.room
            player = room.find_player(player_id)
            if player is not None and player.disconnected_at is None:
                player.disconnected_at = self.clock()
                self.persist_state(room)

    def _has_open_connection(self, player_id: str) -> bool:
        return any(a.player_id == player_id and a.connection.is_open for a in self._connections.values())

    def _purge_stale(self, player_id: str) -> None:
        for cid, attachment in list(self._connections.items()):
            if attachment.player_id == player_id and not attachment.connection.is_open:
                del self._connections[cid]

    def _reject(self, connection: Connection, error: PartyError) -> None:
        self.log.info("party.connection_rejected", connection=connection.id, reason=error.reason)
        if connection.is_open:
            connection.send(error_message(error.reason, error.message))
        self._connections.pop(connection.id, None)
        connection.close()

    def _should_replace(self, player: Optional[Player], session_tag: Optional[str], now: int) -> bool:
        if player is None:
            return True
        if session_tag and player.session_tag and session_tag != player.session_tag:
            return True
        post_restart = player.disconnected_at is not None and now - player.disconnected_at < self.settings.reconnect_grace_ms
        return not post_restart

    def register(self, connection: Connection, player_id: str, name: str, session_tag: Optional[str] = None) -> bool:
        """Bind ``connection`` to a seat. Returns ``False`` when it was turned away."""

        with self._lock:
            now = self.clock()
            self._purge_stale(player_id)
            room = self.room
            player = room.find_player(player_id)

            if room.game_started and player is None:
                self._reject(connection, GameAlreadyStarted("The game has already started"))
                return False

            for cid, attachment in list(self._connections.items()):
                if cid == connection.id or attachment.player_id != player_id:
                    continue
                if self._should_replace(player, session_tag, now):
                    self._reject(
                        attachment.connection,
                        ConnectionReplaced("A newer tab has connected to this party. You can close this page."),
                    )

            if player is None:
                room.players.append(
                    Player(id=player_id, name=name, session_tag=session_tag, last_heartbeat_at=now)
                )
            else:
                player.name = name
                player.connected = True
                player.disconnected_at = None
                player.last_heartbeat_at = now
                if session_tag:
                    player.session_tag = session_tag

            attachment = self._connections.get(connection.id)
            if attachment is None:
                attachment = self._connections[connection.id] = _Attachment(connection)
            attachment.player_id = player_id
            self._meta.last_access_at = now

            self.log.info("party.registered", player_id=player_id, reconnect=player is not None)
            self.persist_state(room)
            self.broadcast()
            return True

    def heartbeat(self, connection: Connection) -> None:
        with self._lock:
            player_id = self.player_for(connection.id)
            if player_id is None:
                return
            now = self.clock()
            self._meta.last_access_at = now
            room = self.room
            player = room.find_player(player_id)
            if player is None:
                return
            revived = not player.connected
            player.connected = True
            player.disconnected_at = None
            player.last_heartbeat_at = now
            self.persist_state(room)
            if revived:
                self.broadcast()

    def handle_message(self, connection: Connection, message: BaseModel) -> None:
        with self._lock:
            if self.closed:
                return
            action = getattr(message, "action", None)
            if action == "register":
                self.register(connection, message.id, message.name, message.session_tag)
                return

            player_id = self.player_for(connection.id)
            if player_id is None:
                self.log.debug("party.unregistered_message", action=action, connection=connection.id)
                return
            if action == "pong":
                self.heartbeat(connection)
                return

            self._meta.last_access_at = self.clock()
            self.handler.handle(_RoomContext(self, connection), player_id, message)

    # -- broadcast ------------------------------------------------------

    def broadcast(self, *, game_starting: bool = False, game_ending: bool = False) -> None:
        with self._lock:
            room = self._room
            host = self.host_id()
            for attachment in list(self._connections.values()):
                connection = attachment.connection
                if attachment.player_id is None or not connection.is_open:
                    continue
                try:
                    payload = self.handler.project(room, attachment.player_id, host)
                except GameError as exc:
                    self.log.warning("party.projection_failed", player_id=attachment.player_id, error=str(exc))
                    payload = self.handler.public_view(room, host)
                message = {"action": "update_state", **payload}
                if game_starting:
                    message["gameStarting"] = True
                if game_ending:
                    message["gameEnding"] = True
                connection.send(message)

    # -- liveness -------------------------------------------------------

    def sweep(self) -> bool:
        """One liveness pass. Returns ``True`` when the room was torn down."""

        with self._lock:
            if self.closed:
                return True
            now = self.clock()
            settings = self.settings
            room = self.room
            changed = False

            live = set()
            for attachment in list(self._connections.values()):
                if attachment.connection.is_open and attachment.player_id is not None:
                    live.add(attachment.player_id)
                    attachment.connection.send(PING)

            stamped = False
            dropped = False
            for player in room.players:
                if player.id in live or not player.connected:
                    continue
                if player.disconnected_at is None:
                    player.disconnected_at = now
                    stamped = True
                elif now - player.disconnected_at >= settings.disconnect_grace_ms:
                    player.connected = False
                    changed = dropped = True
                    self.log.info("party.player_disconnected", player_id=player.id)

            if not room.game_started:
                removed = [
                    p.id
                    for p in room.players
                    if not p.connected
                    and p.disconnected_at is not None
                    and now - p.disconnected_at >= settings.remove_after_ms
                ]
                if removed:
                    room.players = [p for p in room.players if p.id not in removed]
                    for cid, attachment in list(self._connections.items()):
                        if attachment.player_id in removed:
                            del self._connections[cid]
                            attachment.connection.close()
                    changed = True
                    self.log.info("party.players_removed", player_ids=removed)

            if changed or stamped:
                self.persist_state(room)
            if dropped and room.game_started:
                self.handler.on_roster_change(_RoomContext(self))
            if changed:
                self.broadcast()

            if self._is_orphaned(now):
                self.teardown()
                return True
            return False

    def _is_orphaned(self, now: int) -> bool:
        if self.connection_count():
            return False
        if any(p.connected for p in self._room.players):
            return False
        return now - self._meta.last_access_at > self.settings.room_ttl_ms

    def teardown(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            started = self._room.game_started
            self.snapshots.delete_all(self.party_id)
            for attachment in list(self._connections.values()):
                attachment.connection.close()
            self._connections.clear()
            if started and self.backup is not None:
                try:
                    self.backup.mark_inactive(self.party_id)
                except PersistenceError as exc:
                    self.log.warning("party.backup_failed", error=str(exc))
            self.log.info("party.torn_down", started=started)

    # -- recovery -------------------------------------------------------

    @classmethod
    def restore(
        cls,
        game_kind: GameKind | str,
        party_code: str,
        snapshots: SnapshotStore,
        backup: Optional[BackupStore] = None,
        settings: Optional[LivenessSettings] = None,
        clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
    ) -> Optional["PartyCoordinator"]:
        """Rebuild a coordinator from the snapshot, falling back to the backup row.

        The backup wins when there is no snapshot, or when the snapshot is
        from before the start and the backup holds a started game.
        """

        coordinator = cls(game_kind, party_code, snapshots, backup, settings, clock, rng)
        log = coordinator.log
        room = _load_room(snapshots.get(coordinator.party_id, ROOM_KEY), log, "snapshot")
        meta_raw = snapshots.get(coordinator.party_id, META_KEY)

        if room is None or not room.game_started:
            backed_up = None
            if backup is not None:
                try:
                    backed_up = _load_room(backup.load_active(coordinator.party_id), log, "backup")
                except PersistenceError as exc:
                    log.warning("party.backup_failed", error=str(exc))
            if backed_up is not None and (room is None or backed_up.game_started):
                log.info("party.restored_from_backup", started=backed_up.game_started)
                room = backed_up

        if room is None or room.game_kind != coordinator.game_kind:
            return None

        with coordinator._lock:
            coordinator._room = room
            if meta_raw:
                coordinator._meta = PartyMeta.model_validate_json(meta_raw)
            elif backup is not None:
                try:
                    coordinator._meta.first_host_id = backup.first_host_id(coordinator.party_id)
                except PersistenceError as exc:
                    log.warning("party.backup_failed", error=str(exc))
            coordinator._meta.last_access_at = clock()
            coordinator._write_snapshot()
        log.info("party.restored", players=len(room.players), started=room.game_started)
        return coordinator


def _load_room(raw: Optional[str], log, source: str) -> Optional[RoomState]:
    if not raw:
        return None
    try:
        return RoomState.model_validate_json(raw)
    except ValidationError as exc:
        log.warning("party.corrupt_state", source=source, errors=exc.error_count())
        return None
