from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from . import codenames
from .handler_base import GameHandler, RoomContext
from .models import CodenamesSetup, CodenamesState, GameKind, RoomState
from .views import codenames_public_view, codenames_view


class CodenamesHandler(GameHandler):
    kind = GameKind.CODENAMES

    def new_setup(self) -> CodenamesSetup:
        return CodenamesSetup()

    def project(self, room: RoomState, viewer_id: str, host_id: Optional[str]) -> Dict[str, Any]:
        return codenames_view(room, viewer_id, host_id)

    def public_view(self, room: RoomState, host_id: Optional[str]) -> Dict[str, Any]:
        return codenames_public_view(room, host_id)

    @staticmethod
    def _merge_setup(setup: CodenamesSetup, message: Any) -> None:
        if message.red_spymaster_id:
            setup.red_spymaster_id = message.red_spymaster_id
        if message.blue_spymaster_id:
            setup.blue_spymaster_id = message.blue_spymaster_id
        if message.word_bank:
            setup.word_bank = message.word_bank

    def on_codenames_setup_update(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        room = self.editable_setup(ctx, player_id)
        if room is None:
            return
        self._merge_setup(room.setup, message)
        ctx.persist_state(room)
        ctx.broadcast()

    def on_start_game(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        room = self.prepare_start(ctx, player_id, message)
        if room is None:
            return
        self._merge_setup(room.setup, message)
        state = codenames.initialize(room.players, room.setup, ctx.rng)
        self.start(ctx, room, state)

    def _transition(self, ctx: RoomContext, step: Callable[[CodenamesState], CodenamesState]) -> None:
        room = ctx.current_room()
        state = room.state
        if not room.game_started or not isinstance(state, CodenamesState):
            return
        new_state = step(state)
        room.state = new_state
        ending = new_state.phase == "end" and state.phase != "end"
        ctx.persist_state(room, backup=new_state.phase != state.phase)
        ctx.broadcast(game_ending=ending)

    def on_submit_clue(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(ctx, lambda state: codenames.submit_clue(state, player_id, message.clue_word, message.clue_number))

    def on_guess_card(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(ctx, lambda state: codenames.guess_card(state, message.card_index))

    def on_end_turn(self, ctx: RoomContext, player_id: str, message: Any) -> None:
        self._transition(ctx, codenames.end_turn)
