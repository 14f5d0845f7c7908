from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class GameKind(str, Enum):
    AVALON = "avalon"
    CODENAMES = "codenames"


AvalonPhase = Literal["quest", "voting", "results", "revealing", "assassinating", "end"]
CodenamesPhase = Literal["clue", "guessing", "end"]
Team = Literal["red", "blue"]
CardType = Literal["red", "blue", "neutral", "assassin"]


class WireModel(BaseModel):
    """Base for everything that is persisted or sent as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


class Player(WireModel):
    id: str
    name: str
    order: Optional[int] = None
    connected: bool = True
    disconnected_at: Optional[int] = None
    session_tag: Optional[str] = None
    last_heartbeat_at: Optional[int] = None


class AvalonSetup(WireModel):
    kind: Literal["avalon"] = "avalon"
    selected_characters: List[str] = Field(default_factory=list)
    first_player_leads: bool = False


class CodenamesSetup(WireModel):
    kind: Literal["codenames"] = "codenames"
    red_spymaster_id: Optional[str] = None
    blue_spymaster_id: Optional[str] = None
    word_bank: str = "english"


class AvalonState(WireModel):
    kind: Literal["avalon"] = "avalon"
    phase: AvalonPhase = "quest"
    phase_seq: int = 0
    instruction_text: str = ""
    quest_number: int = Field(default=1, ge=1, le=5)
    quest_leader_id: str
    quest_team_ids: List[str] = Field(default_factory=list)
    quest_rejection_count: int = Field(default=0, ge=0, le=5)
    completed_quests: List[bool] = Field(default_factory=list)
    last_votes: Optional[Dict[str, bool]] = None
    revealed_results: Optional[List[bool]] = None
    assassinated_player_id: Optional[str] = None
    winner: Optional[Literal["good", "evil"]] = None

    # Server-only. Never serialized to a client, only projected.
    roles: Dict[str, str] = Field(default_factory=dict)
    character_sex: Dict[str, Literal["m", "f"]] = Field(default_factory=dict)
    pending_votes: Dict[str, bool] = Field(default_factory=dict)
    pending_results: Dict[str, bool] = Field(default_factory=dict)


class Clue(WireModel):
    word: str
    number: int


class Card(WireModel):
    word: str
    revealed: bool = False


class CodenamesState(WireModel):
    kind: Literal["codenames"] = "codenames"
    phase: CodenamesPhase = "clue"
    active_team: Team = "red"
    current_clue: Optional[Clue] = None
    board: List[Card] = Field(default_factory=list)
    red_remaining: int = 0
    blue_remaining: int = 0
    red_spymaster_id: str
    blue_spymaster_id: str
    winner: Optional[Team] = None

    # Server-only, index-aligned with ``board``.
    card_types: List[CardType] = Field(default_factory=list)


Setup = Annotated[Union[AvalonSetup, CodenamesSetup], Field(discriminator="kind")]
GameState = Annotated[Union[AvalonState, CodenamesState], Field(discriminator="kind")]


class RoomState(WireModel):
    game_kind: GameKind
    party_code: str
    players: List[Player] = Field(default_factory=list)
    game_started: bool = False
    setup: Optional[Setup] = None
    state: Optional[GameState] = None

    @model_validator(mode="after")
    def _variants_match_kind(self) -> "RoomState":
        for variant in (self.setup, self.state):
            if variant is not None and variant.kind != self.game_kind.value:
                raise ValueError(f"{variant.kind} payload in a {self.game_kind.value} room")
        return self

    @property
    def party_id(self) -> str:
        return party_id_for(self.game_kind, self.party_code)

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def has_player(self, player_id: str) -> bool:
        return self.find_player(player_id) is not None


class PartyMeta(WireModel):
    """Coordinator bookkeeping kept next to the room snapshot."""

    first_host_id: Optional[str] = None
    last_access_at: int = 0


def party_id_for(game_kind: Union[GameKind, str], party_code: str) -> str:
    kind = game_kind.value if isinstance(game_kind, GameKind) else game_kind
    return f"{kind}-{party_code}"


def ordered_players(players: Iterable[Player]) -> List[Player]:
    """Players in turn order; players without an order go last, keeping roster position."""

    return sorted(players, key=lambda p: p.order if isinstance(p.order, int) else 9999)
