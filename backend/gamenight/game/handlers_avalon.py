from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import structlog

from . import avalon
from .avalon_rules import SPECIAL_ROLES
from .handler_base import GameHandler, RoomContext
from .models import AvalonSetup, AvalonState, GameKind, RoomState
from .views import avalon_public_view, avalon_view

LOGGER = structlog.get_logger(__name__)


class AvalonHandler(GameHandler):
    kind = GameKind.AVALON

    def new_setup(self) -> AvalonSetup:
        return AvalonSetup()

    def project(self, room: RoomState, viewer_id: str, host_id: Optional[str]) -> Dict[str, Any]:
        return avalon_view(room, viewer_id, host_id)

    def public_view(self, room: RoomState, host_id: Optional[str]) -> Dict[str, Any]:
        return avalon_public_view(room, host_id)

    def on_avalon_setup_update(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        room = self.editable_setup(ctx, player_id)
        if room is None:
            return
        setup = room.setup
        if message.selected_characters is not None:
            setup.selected_characters = [c for c in dict.fromkeys(message.selected_characters) if c in SPECIAL_ROLES]
        if message.first_player_flag_active is not None:
            setup.first_player_leads = message.first_player_flag_active
        ctx.persist_state(room)
        ctx.broadcast()

    def on_start_game(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        room = self.prepare_start(ctx, player_id, message)
        if room is None:
            return
        setup = room.setup
        if message.selected_characters is not None:
            setup.selected_characters = list(dict.fromkeys(message.selected_characters))
        if message.first_player_flag_active is not None:
            setup.first_player_leads = message.first_player_flag_active

        state = avalon.initialize(room.players, setup, ctx.rng)
        self.start(ctx, room, state)

    def _transition(self, ctx: RoomContext, step: Callable[[AvalonState, RoomState], AvalonState]) -> None:
        room = ctx.current_room()
        state = room.state
        if not room.game_started or not isinstance(state, AvalonState):
            return
        new_state = step(state, room)
        if new_state == state:
            return
        room.state = new_state
        phase_changed = new_state.phase_seq != state.phase_seq
        ctx.persist_state(room, backup=phase_changed)
        ctx.broadcast(game_ending=phase_changed and new_state.phase == "end")

    def on_roster_change(self, ctx: RoomContext) -> None:
        self._transition(ctx, lambda state, room: avalon.complete_vote_if_ready(state, room.players))

    def on_select_quest_team(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(
            ctx, lambda state, room: avalon.select_team(state, player_id, message.selected_players, room.players)
        )

    def on_quest_vote(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(ctx, lambda state, room: avalon.cast_vote(state, player_id, message.approve, room.players))

    def on_quest_result(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(
            ctx, lambda state, room: avalon.submit_result(state, player_id, message.success, room.players, ctx.rng)
        )

    def on_reveal_results(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(
            ctx, lambda state, room: avalon.advance_after_reveal(state, room.players, phase_seq=message.phase_seq)
        )

    def on_assassinate(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(
            ctx, lambda state, room: avalon.assassinate(state, player_id, message.target_player_id, room.players)
        )
