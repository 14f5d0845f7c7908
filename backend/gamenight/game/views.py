"""Per-player projections of the canonical room state.

Nothing in a payload built here may leak a server-only field: Avalon role
assignments, pending votes and results, Codenames card types of unrevealed
cards. Each game has a viewer-specific projection and a public one. The public
one is what the coordinator falls back to when a viewer cannot be projected.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import ProjectionError
from . import avalon_rules as rules
from .models import AvalonState, CodenamesState, Player, RoomState


def player_payload(player: Player) -> Dict[str, Any]:
    return player.to_wire(exclude={"session_tag"})


def room_payload(room: RoomState, host_id: Optional[str]) -> Dict[str, Any]:
    return {
        "gameKind": room.game_kind.value,
        "partyCode": room.party_code,
        "gameStarted": room.game_started,
        "players": [player_payload(p) for p in room.players],
        "setup": room.setup.to_wire() if room.setup is not None else None,
        "state": None,
        "hostId": host_id,
    }


def _avalon_state_payload(state: AvalonState, room: RoomState) -> Dict[str, Any]:
    payload = state.to_wire(
        exclude={
            "roles",
            "character_sex",
            "pending_votes",
            "pending_results",
            "last_votes",
            "revealed_results",
        }
    )
    count = len(room.players)
    if rules.MIN_PLAYERS <= count <= rules.MAX_PLAYERS:
        payload["questTeamSize"] = rules.quest_team_size(count, state.quest_number)
        payload["questTeamSizes"] = rules.quest_team_sizes(count)

    # Aggregates become public only once the round they belong to is complete.
    if state.last_votes is not None:
        payload["questVotes"] = dict(state.last_votes)
    if state.revealed_results is not None:
        payload["questResults"] = list(state.revealed_results)
    return payload


def _avalon_players(room: RoomState, state: AvalonState, viewer_id: Optional[str]) -> List[Dict[str, Any]]:
    revealed_all = state.phase == "end"
    visible = rules.visible_roles(viewer_id, state.roles) if viewer_id else {}

    players = []
    for p in room.players:
        data = player_payload(p)
        data["voted"] = state.phase == "voting" and p.id in state.pending_votes
        data["decided"] = state.phase == "results" and p.id in state.pending_results
        if p.id == viewer_id or revealed_all:
            data["specialId"] = state.roles.get(p.id)
            if p.id == viewer_id and p.id in state.character_sex:
                data["characterSex"] = state.character_sex[p.id]
        elif p.id in visible:
            data["specialId"] = visible[p.id]
        players.append(data)
    return players


def avalon_view(room: RoomState, viewer_id: str, host_id: Optional[str]) -> Dict[str, Any]:
    payload = room_payload(room, host_id)
    state = room.state
    if not isinstance(state, AvalonState):
        return payload
    if viewer_id not in state.roles:
        raise ProjectionError(f"Player {viewer_id} has no role in this game")

    payload["state"] = _avalon_state_payload(state, room)
    payload["players"] = _avalon_players(room, state, viewer_id)
    return payload


def avalon_public_view(room: RoomState, host_id: Optional[str]) -> Dict[str, Any]:
    payload = room_payload(room, host_id)
    state = room.state
    if isinstance(state, AvalonState):
        payload["state"] = _avalon_state_payload(state, room)
        payload["players"] = _avalon_players(room, state, None)
    return payload


def _codenames_board(state: CodenamesState, show_all: bool) -> List[Dict[str, Any]]:
    board = []
    for card, card_type in zip(state.board, state.card_types):
        data = card.to_wire()
        if show_all or card.revealed:
            data["type"] = card_type
        board.append(data)
    return board


def _codenames_payload(room: RoomState, host_id: Optional[str], show_all: bool) -> Dict[str, Any]:
    payload = room_payload(room, host_id)
    state = room.state
    if isinstance(state, CodenamesState):
        data = state.to_wire(exclude={"card_types", "board"})
        data["board"] = _codenames_board(state, show_all or state.phase == "end")
        data["gameEnding"] = state.phase == "end"
        payload["state"] = data
    return payload


def codenames_view(room: RoomState, viewer_id: str, host_id: Optional[str]) -> Dict[str, Any]:
    state = room.state
    is_active_spymaster = isinstance(state, CodenamesState) and (
        (state.active_team == "red" and viewer_id == state.red_spymaster_id)
        or (state.active_team == "blue" and viewer_id == state.blue_spymaster_id)
    )
    return _codenames_payload(room, host_id, show_all=is_active_spymaster)


def codenames_public_view(room: RoomState, host_id: Optional[str]) -> Dict[str, Any]:
    return _codenames_payload(room, host_id, show_all=False)
