"""Pydantic contracts for client -> server messages."""

from __future__ import annotations

import json
from typing import Annotated, Any, List, Literal, Optional, Union

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

LOGGER = structlog.get_logger(__name__)


class ClientMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class OrderEntry(ClientMessage):
    id: str
    order: Optional[int] = None


class RegisterMessage(ClientMessage):
    action: Literal["register"]
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    session_tag: Optional[str] = Field(None, validation_alias=AliasChoices("sessionTag", "tabId", "session_tag"))


class PongMessage(ClientMessage):
    action: Literal["pong"]


class StartGameMessage(ClientMessage):
    action: Literal["start_game"]
    players: List[OrderEntry] = Field(default_factory=list)
    selected_characters: Optional[List[str]] = None
    first_player_flag_active: Optional[bool] = None
    red_spymaster_id: Optional[str] = None
    blue_spymaster_id: Optional[str] = None
    word_bank: Optional[str] = None


class UpdateOrderMessage(ClientMessage):
    action: Literal["update_order"]
    players: List[OrderEntry]


class AvalonSetupUpdateMessage(ClientMessage):
    action: Literal["avalon_setup_update"]
    selected_characters: Optional[List[str]] = None
    first_player_flag_active: Optional[bool] = None


class CodenamesSetupUpdateMessage(ClientMessage):
    action: Literal["codenames_setup_update"]
    red_spymaster_id: Optional[str] = None
    blue_spymaster_id: Optional[str] = None
    word_bank: Optional[str] = None


class SelectQuestTeamMessage(ClientMessage):
    action: Literal["select_quest_team"]
    selected_players: List[str]


class QuestVoteMessage(ClientMessage):
    action: Literal["quest_vote"]
    approve: bool


class QuestResultMessage(ClientMessage):
    action: Literal["quest_result"]
    success: bool


class RevealResultsMessage(ClientMessage):
    action: Literal["reveal_results"]
    phase_seq: Optional[int] = None


class AssassinateMessage(ClientMessage):
    action: Literal["assassinate"]
    target_player_id: str


class SubmitClueMessage(ClientMessage):
    action: Literal["submit_clue"]
    clue_word: str
    clue_number: int


class GuessCardMessage(ClientMessage):
    action: Literal["guess_card"]
    card_index: int


class EndTurnMessage(ClientMessage):
    action: Literal["end_turn"]


InboundMessage = Annotated[
    Union[
        RegisterMessage,
        PongMessage,
        StartGameMessage,
        UpdateOrderMessage,
        AvalonSetupUpdateMessage,
        CodenamesSetupUpdateMessage,
        SelectQuestTeamMessage,
        QuestVoteMessage,
        QuestResultMessage,
        RevealResultsMessage,
        AssassinateMessage,
        SubmitClueMessage,
        GuessCardMessage,
        EndTurnMessage,
    ],
    Field(discriminator="action"),
]

_ADAPTER: TypeAdapter = TypeAdapter(InboundMessage)


def parse_message(raw: Any) -> Optional[BaseModel]:
    """Decode one client frame; malformed or unknown frames come back as ``None``."""

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            LOGGER.debug("protocol.not_json")
            return None
    if not isinstance(raw, dict):
        return None
    try:
        return _ADAPTER.validate_python(raw)
    except ValidationError as exc:
        LOGGER.debug("protocol.invalid_message", action=raw.get("action"), errors=exc.error_count())
        return None


def error_message(reason: str, message: str = "") -> dict:
    payload = {"action": "error", "reason": reason}
    if message:
        payload["message"] = message
    return payload


PING = {"action": "ping"}
