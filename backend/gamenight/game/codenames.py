"""Codenames board and turn transitions (clue -> guessing -> clue | end)."""

from __future__ import annotations

import random
from typing import List, Sequence

import structlog

from ..errors import InvalidClue, InvalidGuess, MissingSetup, NotYourTurn, WrongPhase
from .models import Card, Clue, CodenamesSetup, CodenamesState, Player
from .words import bank_words, pick_words

LOGGER = structlog.get_logger(__name__)

BOARD_SIZE = 25
DISTRIBUTION = (("red", 9), ("blue", 8), ("neutral", 7), ("assassin", 1))


def other_team(team: str) -> str:
    return "blue" if team == "red" else "red"


def deal_card_types(rng: random.Random) -> List[str]:
    types = [card_type for card_type, count in DISTRIBUTION for _ in range(count)]
    rng.shuffle(types)
    return types


def initialize(players: Sequence[Player], setup: CodenamesSetup, rng: random.Random) -> CodenamesState:
    red, blue = setup.red_spymaster_id, setup.blue_spymaster_id
    if not red or not blue:
        raise MissingSetup("Both spymasters must be selected before starting the game")
    if red == blue:
        raise MissingSetup("Red and blue need different spymasters")
    roster = {p.id for p in players}
    if red not in roster or blue not in roster:
        raise MissingSetup("Spymasters must be players in this party")

    words = pick_words(bank_words(setup.word_bank), BOARD_SIZE, rng)
    types = deal_card_types(rng)

    LOGGER.info("codenames.initialized", players=len(players), word_bank=setup.word_bank)
    return CodenamesState(
        board=[Card(word=w) for w in words],
        card_types=types,
        red_remaining=types.count("red"),
        blue_remaining=types.count("blue"),
        red_spymaster_id=red,
        blue_spymaster_id=blue,
    )


def spymaster_of(state: CodenamesState, team: str) -> str:
    return state.red_spymaster_id if team == "red" else state.blue_spymaster_id


def remaining_for(state: CodenamesState, team: str) -> int:
    return state.red_remaining if team == "red" else state.blue_remaining


def submit_clue(state: CodenamesState, actor_id: str, word: str, number: int) -> CodenamesState:
    if state.phase != "clue":
        raise WrongPhase(f"Clues are given in the clue phase, game is in {state.phase}")
    if actor_id != spymaster_of(state, state.active_team):
        raise NotYourTurn("Not your turn to give a clue")

    clue_word = (word or "").strip()
    if not clue_word:
        raise InvalidClue("Clue word is empty")
    remaining = remaining_for(state, state.active_team)
    if number < 0 or number > remaining:
        raise InvalidClue(f"Clue number cannot exceed remaining {state.active_team} team cards ({remaining})")

    return state.model_copy(update={"phase": "guessing", "current_clue": Clue(word=clue_word.upper(), number=number)})


def _end_game(state: CodenamesState, winner: str) -> CodenamesState:
    LOGGER.info("codenames.game_over", winner=winner, red_remaining=state.red_remaining, blue_remaining=state.blue_remaining)
    return state.model_copy(update={"phase": "end", "winner": winner, "current_clue": None})


def end_turn(state: CodenamesState) -> CodenamesState:
    if state.phase != "guessing":
        raise WrongPhase(f"Turns end during guessing, game is in {state.phase}")
    return state.model_copy(update={"phase": "clue", "active_team": other_team(state.active_team), "current_clue": None})


def guess_card(state: CodenamesState, card_index: int) -> CodenamesState:
    if state.phase != "guessing":
        raise WrongPhase(f"Not in guessing phase, game is in {state.phase}")
    if not isinstance(card_index, int) or not 0 <= card_index < len(state.board):
        raise InvalidGuess(f"No card at index {card_index}")
    if state.board[card_index].revealed:
        raise InvalidGuess(f"Card {card_index} is already revealed")

    board = list(state.board)
    board[card_index] = board[card_index].model_copy(update={"revealed": True})
    card_type = state.card_types[card_index]
    team = state.active_team

    changes = {"board": board}
    if card_type == "red":
        changes["red_remaining"] = state.red_remaining - 1
    elif card_type == "blue":
        changes["blue_remaining"] = state.blue_remaining - 1
    revealed = state.model_copy(update=changes)

    if card_type == "assassin":
        return _end_game(revealed, other_team(team))
    if card_type in ("red", "blue") and remaining_for(revealed, card_type) == 0:
        return _end_game(revealed, card_type)
    if card_type == team:
        return revealed
    return end_turn(revealed)
