"""Avalon phase transitions.

Every function takes the current :class:`AvalonState` and returns a new one;
nothing here mutates its input or performs I/O. Illegal moves raise a
:class:`~gamenight.errors.GameRuleError` subclass and leave the caller's state
untouched.

Phase flow::

    quest -> voting -> quest (rejected) | results (approved)
    results -> revealing -> quest (next quest) | assassinating | end
    assassinating -> end
"""

from __future__ import annotations

import random
from typing import Dict, Iterable, Optional, Sequence, Tuple

import structlog

from ..errors import GameRuleError, InvalidRoleSelection, InvalidTeamSize, NotYourTurn, StalePhase, WrongPhase
from . import avalon_rules as rules
from .models import AvalonSetup, AvalonState, Player, ordered_players

LOGGER = structlog.get_logger(__name__)


def next_leader_id(leader_id: str, players: Sequence[Player]) -> str:
    ids = [p.id for p in ordered_players(players)]
    if leader_id not in ids:
        return ids[0]
    return ids[(ids.index(leader_id) + 1) % len(ids)]


def _name_of(player_id: str, players: Sequence[Player]) -> str:
    for p in players:
        if p.id == player_id:
            return p.name
    return player_id


def instruction_for(state: AvalonState, players: Sequence[Player]) -> str:
    phase = state.phase
    if phase == "quest":
        return f"{_name_of(state.quest_leader_id, players)}, choose your team for quest {state.quest_number}"
    if phase == "voting":
        return "Everybody vote! Approve or reject the quest team"
    if phase == "results":
        if state.quest_team_ids:
            names = ", ".join(_name_of(pid, players) for pid in state.quest_team_ids)
            return f"{names}, choose to succeed or fail the quest"
        return "Choose to succeed or fail the quest"
    if phase == "revealing":
        return "Revealing quest results..."
    if phase == "assassinating":
        return "Assassin, choose who you think is Merlin"
    return "Game Over!"


def _enter(state: AvalonState, phase: str, players: Sequence[Player], *, instruction: Optional[str] = None, **changes) -> AvalonState:
    """Move into a new phase instance."""

    changed = state.model_copy(update={"phase": phase, "phase_seq": state.phase_seq + 1, **changes})
    text = instruction if instruction is not None else instruction_for(changed, players)
    return changed.model_copy(update={"instruction_text": text})


def _finish(state: AvalonState, players: Sequence[Player], winner: str, text: str, **changes) -> AvalonState:
    LOGGER.info("avalon.game_over", winner=winner, quest=state.quest_number, reason=text)
    return _enter(state, "end", players, instruction=text, winner=winner, **changes)


def _require_phase(state: AvalonState, phase: str) -> None:
    if state.phase != phase:
        raise WrongPhase(f"Expected phase {phase}, game is in {state.phase}")


def assign_roles(
    players: Sequence[Player],
    selected_characters: Iterable[str],
    rng: random.Random,
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Deal one role to every player.

    Special roles are dealt first, the rest of each side is filled with
    servants and minions. Returns ``(roles, character_sex)``; only generic
    roles get a portrait gender, alternating from a random first pick.
    """

    count = len(players)
    evil = rules.evil_count(count)
    good = count - evil

    selected = list(dict.fromkeys(selected_characters))
    unknown = [r for r in selected if r not in rules.SPECIAL_ROLES]
    if unknown:
        raise InvalidRoleSelection(f"Unknown or generic roles selected: {unknown}")
    special_good = [r for r in selected if rules.is_good(r)]
    special_evil = [r for r in selected if rules.is_evil(r)]
    if len(special_good) > good or len(special_evil) > evil:
        raise InvalidRoleSelection(
            f"{count} players allow {good} good and {evil} evil roles, "
            f"got {len(special_good)} good and {len(special_evil)} evil specials"
        )

    deck = (
        special_good
        + special_evil
        + [rules.SERVANT] * (good - len(special_good))
        + [rules.MINION] * (evil - len(special_evil))
    )
    seats = [p.id for p in players]
    rng.shuffle(seats)
    roles = dict(zip(seats, deck))

    character_sex: Dict[str, str] = {}
    for generic in (rules.SERVANT, rules.MINION):
        sex = rng.choice(("m", "f"))
        for player_id in seats:
            if roles[player_id] == generic:
                character_sex[player_id] = sex
                sex = "f" if sex == "m" else "m"

    return roles, character_sex


def initialize(players: Sequence[Player], setup: AvalonSetup, rng: random.Random) -> AvalonState:
    """Deal roles and open quest 1."""

    rules.get_ruleset(len(players))
    roles, character_sex = assign_roles(players, setup.selected_characters, rng)

    ordered = ordered_players(players)
    leader = ordered[0].id if setup.first_player_leads else rng.choice(ordered).id

    state = AvalonState(quest_leader_id=leader, roles=roles, character_sex=character_sex)
    LOGGER.info("avalon.initialized", players=len(players), leader=leader, specials=sorted(setup.selected_characters))
    return state.model_copy(update={"instruction_text": instruction_for(state, players)})


def select_team(state: AvalonState, actor_id: str, member_ids: Sequence[str], players: Sequence[Player]) -> AvalonState:
    _require_phase(state, "quest")
    if actor_id != state.quest_leader_id:
        raise NotYourTurn("Only the quest leader picks the team")

    roster = {p.id for p in players}
    members = list(dict.fromkeys(member_ids))
    if len(members) != len(member_ids) or not set(members) <= roster:
        raise InvalidTeamSize("Team members must be distinct players in this party")

    required = rules.quest_team_size(len(players), state.quest_number)
    if len(members) != required:
        raise InvalidTeamSize(f"Invalid team size. Need {required} players, got {len(members)}")

    return _enter(state, "voting", players, quest_team_ids=members, pending_votes={}, last_votes=None)


def cast_vote(state: AvalonState, actor_id: str, approve: bool, players: Sequence[Player]) -> AvalonState:
    """Record a vote; tally once every connected player has one on file."""

    _require_phase(state, "voting")
    voter = next((p for p in players if p.id == actor_id), None)
    if voter is None or not voter.connected:
        raise NotYourTurn("Only connected players vote")

    votes = dict(state.pending_votes)
    votes[actor_id] = bool(approve)
    return complete_vote_if_ready(state.model_copy(update={"pending_votes": votes}), players)


def complete_vote_if_ready(state: AvalonState, players: Sequence[Player]) -> AvalonState:
    """Tally the vote once every connected player has one on file.

    Also run when a seat drops out mid-vote.
    """

    if state.phase != "voting" or not state.pending_votes:
        return state
    votes = dict(state.pending_votes)
    required = [p.id for p in players if p.connected]
    if not all(pid in votes for pid in required):
        return state

    approvals = sum(1 for v in votes.values() if v)
    rejections = len(votes) - approvals
    LOGGER.info("avalon.vote_tallied", quest=state.quest_number, approve=approvals, reject=rejections)

    # Ties reject.
    if rejections >= approvals:
        count = state.quest_rejection_count + 1
        if count >= rules.MAX_REJECTIONS:
            return _finish(
                state,
                players,
                "evil",
                "Evil wins! Too many quest rejections.",
                quest_rejection_count=count,
                pending_votes={},
                last_votes=votes,
            )
        return _enter(
            state,
            "quest",
            players,
            quest_leader_id=next_leader_id(state.quest_leader_id, players),
            quest_team_ids=[],
            quest_rejection_count=count,
            pending_votes={},
            last_votes=votes,
        )

    return _enter(state, "results", players, pending_votes={}, last_votes=votes, pending_results={}, revealed_results=None)


def submit_result(
    state: AvalonState,
    actor_id: str,
    success: bool,
    players: Sequence[Player],
    rng: random.Random,
) -> AvalonState:
    """Collect one quest card per team member, then score the quest."""

    _require_phase(state, "results")
    if actor_id not in state.quest_team_ids:
        raise NotYourTurn("Only quest team members submit results")
    if actor_id in state.pending_results:
        raise NotYourTurn("Result already submitted")

    results = dict(state.pending_results)
    results[actor_id] = bool(success)
    if len(results) < len(state.quest_team_ids):
        return state.model_copy(update={"pending_results": results})

    fails = sum(1 for ok in results.values() if not ok)
    threshold = rules.quest_fail_threshold(len(players), state.quest_number)
    passed = fails < threshold

    # Shuffle so the reveal order says nothing about who played what.
    revealed = list(results.values())
    rng.shuffle(revealed)

    LOGGER.info("avalon.quest_scored", quest=state.quest_number, fails=fails, threshold=threshold, passed=passed)
    return _enter(
        state,
        "revealing",
        players,
        pending_results={},
        revealed_results=revealed,
        completed_quests=[*state.completed_quests, passed],
    )


def advance_after_reveal(state: AvalonState, players: Sequence[Player], phase_seq: Optional[int] = None) -> AvalonState:
    """Leave the revealing phase exactly once per revealing instance."""

    _require_phase(state, "revealing")
    if phase_seq is not None and phase_seq != state.phase_seq:
        raise StalePhase(f"Reveal for phase {phase_seq}, current phase is {state.phase_seq}")

    successes = sum(1 for q in state.completed_quests if q)
    fails = len(state.completed_quests) - successes

    if successes >= rules.WINNING_QUESTS:
        in_play = set(state.roles.values())
        if rules.MERLIN in in_play and rules.ASSASSIN in in_play:
            return _enter(state, "assassinating", players, revealed_results=None)
        return _finish(state, players, "good", "Good wins! Three quests succeeded.", revealed_results=None)

    if fails >= rules.WINNING_QUESTS:
        return _finish(state, players, "evil", "Evil wins! Three quests failed.", revealed_results=None)

    return _enter(
        state,
        "quest",
        players,
        quest_number=state.quest_number + 1,
        quest_leader_id=next_leader_id(state.quest_leader_id, players),
        quest_team_ids=[],
        quest_rejection_count=0,
        revealed_results=None,
        last_votes=None,
    )


def assassinate(state: AvalonState, actor_id: str, target_id: str, players: Sequence[Player]) -> AvalonState:
    _require_phase(state, "assassinating")
    if state.roles.get(actor_id) != rules.ASSASSIN:
        raise NotYourTurn("Only the assassin may strike")
    if target_id not in state.roles:
        raise GameRuleError(f"Unknown assassination target {target_id}")

    if state.roles[target_id] == rules.MERLIN:
        return _finish(state, players, "evil", "Evil wins! Merlin was assassinated.", assassinated_player_id=target_id)
    return _finish(state, players, "good", "Good wins! Merlin survived.", assassinated_player_id=target_id)
