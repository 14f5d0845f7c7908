"""Avalon rule tables for 5 to 10 players.

Everything here is a pure lookup: quest team sizes, how many fail cards sink a
quest, the good/evil split and which roles each role can see at the start of
the game.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional

from ..errors import InvalidParameter

MIN_PLAYERS = 5
MAX_PLAYERS = 10
QUEST_COUNT = 5
MAX_REJECTIONS = 5
WINNING_QUESTS = 3

MERLIN = "merlin"
PERCIVAL = "percival"
SERVANT = "servant"
ASSASSIN = "assassin"
MORGANA = "morgana"
MORDRED = "mordred"
OBERON = "oberon"
MINION = "minion"

GOOD_ROLES: FrozenSet[str] = frozenset({MERLIN, PERCIVAL, SERVANT})
EVIL_ROLES: FrozenSet[str] = frozenset({ASSASSIN, MORGANA, MORDRED, OBERON, MINION})
GENERIC_ROLES: FrozenSet[str] = frozenset({SERVANT, MINION})
SPECIAL_ROLES: FrozenSet[str] = (GOOD_ROLES | EVIL_ROLES) - GENERIC_ROLES


@dataclass(frozen=True)
class AvalonRuleset:
    """Quest sizes and fail thresholds for one player count."""

    players: int
    evil: int
    quest_sizes: List[int]
    double_fail_quest: Optional[int] = None

    def __post_init__(self) -> None:
        if len(self.quest_sizes) != QUEST_COUNT:
            raise ValueError("Quest sizes must contain exactly 5 quests")
        if self.evil >= self.players:
            raise ValueError(f"Evil ({self.evil}) must be fewer than players ({self.players})")

    @property
    def good(self) -> int:
        return self.players - self.evil

    def team_size(self, quest_number: int) -> int:
        return self.quest_sizes[quest_number - 1]

    def fail_threshold(self, quest_number: int) -> int:
        return 2 if self.double_fail_quest == quest_number else 1


RULESETS: Mapping[int, AvalonRuleset] = MappingProxyType(
    {
        5: AvalonRuleset(players=5, evil=2, quest_sizes=[2, 3, 2, 3, 3]),
        6: AvalonRuleset(players=6, evil=2, quest_sizes=[2, 3, 4, 3, 4]),
        7: AvalonRuleset(players=7, evil=3, quest_sizes=[2, 3, 3, 4, 4], double_fail_quest=4),
        8: AvalonRuleset(players=8, evil=3, quest_sizes=[3, 4, 4, 5, 5], double_fail_quest=4),
        9: AvalonRuleset(players=9, evil=3, quest_sizes=[3, 4, 4, 5, 5], double_fail_quest=4),
        10: AvalonRuleset(players=10, evil=4, quest_sizes=[3, 4, 4, 5, 5], double_fail_quest=4),
    }
)


def get_ruleset(player_count: int) -> AvalonRuleset:
    ruleset = RULESETS.get(player_count)
    if ruleset is None:
        raise InvalidParameter(
            f"Invalid player count: {player_count}. Must be between {MIN_PLAYERS}-{MAX_PLAYERS}."
        )
    return ruleset


def _check_quest(quest_number: int) -> None:
    if not isinstance(quest_number, int) or not 1 <= quest_number <= QUEST_COUNT:
        raise InvalidParameter(f"Invalid quest number: {quest_number}. Must be between 1-{QUEST_COUNT}.")


def quest_team_size(player_count: int, quest_number: int) -> int:
    ruleset = get_ruleset(player_count)
    _check_quest(quest_number)
    return ruleset.team_size(quest_number)


def quest_fail_threshold(player_count: int, quest_number: int) -> int:
    ruleset = get_ruleset(player_count)
    _check_quest(quest_number)
    return ruleset.fail_threshold(quest_number)


def quest_team_sizes(player_count: int) -> List[int]:
    return list(get_ruleset(player_count).quest_sizes)


def evil_count(player_count: int) -> int:
    return get_ruleset(player_count).evil


def good_count(player_count: int) -> int:
    return player_count - evil_count(player_count)


def is_evil(role: str) -> bool:
    return role in EVIL_ROLES


def is_good(role: str) -> bool:
    return role in GOOD_ROLES


def alignment_of(role: str) -> str:
    if is_good(role):
        return "good"
    if is_evil(role):
        return "evil"
    raise InvalidParameter(f"Unknown role '{role}'")


@dataclass(frozen=True)
class RoleVisibility:
    can_see: FrozenSet[str]
    appears_as: Optional[str]


_EVIL_TEAM_SIGHT = RoleVisibility(can_see=frozenset({ASSASSIN, MORGANA, MORDRED, MINION}), appears_as=MINION)

# Roles absent from this table see nobody.
VISIBILITY: Mapping[str, RoleVisibility] = MappingProxyType(
    {
        # Mordred stays hidden from Merlin.
        MERLIN: RoleVisibility(can_see=frozenset({ASSASSIN, MORGANA, OBERON, MINION}), appears_as=MINION),
        PERCIVAL: RoleVisibility(can_see=frozenset({MERLIN, MORGANA}), appears_as=MERLIN),
        # Oberon is invisible to the rest of evil.
        ASSASSIN: _EVIL_TEAM_SIGHT,
        MORGANA: _EVIL_TEAM_SIGHT,
        MORDRED: _EVIL_TEAM_SIGHT,
        # Generic minions get the evil team's sight too, not the blind seat other tables give them.
        MINION: _EVIL_TEAM_SIGHT,
    }
)


def sees(viewer_role: str, target_role: str) -> Optional[str]:
    """Return how ``target_role`` appears to ``viewer_role``, or ``None`` if hidden."""

    rule = VISIBILITY.get(viewer_role)
    if rule is None or target_role not in rule.can_see:
        return None
    return rule.appears_as


def visible_roles(viewer_id: str, roles: Dict[str, str]) -> Dict[str, str]:
    """Disguised role ids that ``viewer_id`` can see for the other players."""

    viewer_role = roles.get(viewer_id)
    if viewer_role is None:
        return {}
    visible: Dict[str, str] = {}
    for player_id, role in roles.items():
        if player_id == viewer_id:
            continue
        appearance = sees(viewer_role, role)
        if appearance is not None:
            visible[player_id] = appearance
    return visible
