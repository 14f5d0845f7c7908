from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Protocol

import structlog
from pydantic import BaseModel

from ..errors import GameRuleError, InvalidParameter
from .models import GameKind, Player, RoomState, ordered_players

LOGGER = structlog.get_logger(__name__)


class RoomContext(Protocol):
    """What a game handler may do to its room, and nothing more."""

    rng: random.Random

    def current_room(self) -> RoomState:
        """A private deep copy of the canonical room state."""

    def host_id(self) -> Optional[str]:
        ...

    def persist_state(self, room: RoomState, *, backup: bool = False) -> None:
        """Replace the canonical room state, snapshot it and optionally back it up."""

    def broadcast(self, *, game_starting: bool = False, game_ending: bool = False) -> None:
        ...

    def reply_error(self, reason: str, message: str = "") -> None:
        """Send an error frame to the connection whose message is being handled."""


def apply_orders(players: Iterable[Player], entries: Iterable[Any]) -> None:
    by_id = {p.id: p for p in players}
    for entry in entries:
        player = by_id.get(entry.id)
        if player is not None and isinstance(entry.order, int):
            player.order = entry.order


def normalize_order(players: Iterable[Player]) -> List[Player]:
    """Sort by order and renumber densely from 1."""

    ordered = ordered_players(players)
    for index, player in enumerate(ordered, start=1):
        player.order = index
    return ordered


class GameHandler(ABC):
    """Routes one game's actions to its state machine and projects its views.

    Actions are dispatched to ``on_<action>`` methods. Rule violations are
    logged and swallowed: the room is not touched and nothing is broadcast.
    """

    kind: GameKind

    def handle(self, ctx: RoomContext, player_id: str, message: BaseModel) -> None:
        action = getattr(message, "action", None)
        method = getattr(self, f"on_{action}", None)
        log = LOGGER.bind(game=self.kind.value, action=action, player_id=player_id)
        if method is None:
            log.debug("handler.unsupported_action")
            return
        try:
            method(ctx, player_id, message)
        except GameRuleError as exc:
            log.info("handler.action_rejected", reason=exc.reason, detail=str(exc))
        except InvalidParameter as exc:
            log.warning("handler.invalid_parameter", detail=str(exc))

    @abstractmethod
    def new_setup(self) -> BaseModel:
        ...

    @abstractmethod
    def project(self, room: RoomState, viewer_id: str, host_id: Optional[str]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def public_view(self, room: RoomState, host_id: Optional[str]) -> Dict[str, Any]:
        ...

    @staticmethod
    def is_host(ctx: RoomContext, player_id: str) -> bool:
        host = ctx.host_id()
        return host is not None and host == player_id

    def editable_setup(self, ctx: RoomContext, player_id: str) -> Optional[RoomState]:
        """Room copy for a pre-start setup change, or ``None`` if not allowed."""

        room = ctx.current_room()
        if room.game_started:
            LOGGER.info("handler.setup_after_start", game=self.kind.value, player_id=player_id)
            return None
        if not self.is_host(ctx, player_id):
            LOGGER.info("handler.not_host", game=self.kind.value, player_id=player_id)
            return None
        if room.setup is None:
            room.setup = self.new_setup()
        return room

    def on_update_order(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        if ctx.current_room().game_started:
            ctx.reply_error("game_started", "Turn order is locked once the game has started")
            return
        room = self.editable_setup(ctx, player_id)
        if room is None:
            return
        apply_orders(room.players, message.players)
        ctx.persist_state(room, backup=True)
        ctx.broadcast()

    def on_roster_change(self, ctx: RoomContext) -> None:
        """Called after the liveness sweep flips a seat's ``connected`` flag."""

    def prepare_start(self, ctx: RoomContext, player_id: str, message: Any) -> Optional[RoomState]:
        """Host-only start checks plus turn order normalisation."""

        room = self.editable_setup(ctx, player_id)
        if room is None:
            return None
        if message.players:
            apply_orders(room.players, message.players)
        room.players = normalize_order(room.players)
        return room

    def start(self, ctx: RoomContext, room: RoomState, state: BaseModel) -> None:
        room.state = state
        room.game_started = True
        LOGGER.info("handler.game_started", game=self.kind.value, party=room.party_id, players=len(room.players))
        ctx.persist_state(room, backup=True)
        ctx.broadcast(game_starting=True)
