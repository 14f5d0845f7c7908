"""Tests for Avalon phase transitions."""

import random
from collections import Counter

import pytest

from gamenight.errors import (
    InvalidParameter,
    InvalidRoleSelection,
    InvalidTeamSize,
    NotYourTurn,
    StalePhase,
    WrongPhase,
)
from gamenight.game import avalon
from gamenight.game import avalon_rules as rules
from gamenight.game.models import AvalonSetup, AvalonState

ROLES_5 = {"p1": "merlin", "p2": "servant", "p3": "servant", "p4": "assassin", "p5": "minion"}


def make_state(**changes):
    state = AvalonState(quest_leader_id="p1", roles=dict(ROLES_5))
    return state.model_copy(update=changes)


class TestAssignRoles:
    @pytest.mark.parametrize("count", range(5, 11))
    def test_counts_match_table(self, make_players, count):
        players = make_players(count)
        roles, _ = avalon.assign_roles(players, ["merlin", "assassin"], random.Random(count))

        assert set(roles) == {p.id for p in players}
        assert sum(1 for r in roles.values() if rules.is_evil(r)) == rules.evil_count(count)
        tally = Counter(roles.values())
        assert tally["merlin"] == 1
        assert tally["assassin"] == 1

    def test_generic_roles_alternate_portrait_sex(self, make_players):
        players = make_players(10)
        roles, sex = avalon.assign_roles(players, [], random.Random(3))

        assert set(sex) == set(roles)
        for generic in ("servant", "minion"):
            picks = Counter(sex[pid] for pid, role in roles.items() if role == generic)
            assert abs(picks["m"] - picks["f"]) <= 1

    def test_special_roles_have_no_portrait_sex(self, make_players):
        roles, sex = avalon.assign_roles(make_players(5), ["merlin", "assassin"], random.Random(1))
        specials = [pid for pid, role in roles.items() if role in ("merlin", "assassin")]
        assert not set(specials) & set(sex)

    def test_too_many_evil_specials(self, make_players):
        with pytest.raises(InvalidRoleSelection):
            avalon.assign_roles(make_players(5), ["assassin", "morgana", "mordred"], random.Random(1))

    def test_generic_role_cannot_be_selected(self, make_players):
        with pytest.raises(InvalidRoleSelection):
            avalon.assign_roles(make_players(5), ["servant"], random.Random(1))


class TestInitialize:
    def test_rejects_bad_player_count(self, make_players):
        with pytest.raises(InvalidParameter):
            avalon.initialize(make_players(4), AvalonSetup(), random.Random(1))

    def test_first_player_leads(self, make_players):
        state = avalon.initialize(make_players(5), AvalonSetup(first_player_leads=True), random.Random(1))

        assert state.quest_leader_id == "p1"
        assert state.phase == "quest"
        assert state.phase_seq == 0
        assert state.quest_number == 1
        assert "Player 1" in state.instruction_text

    def test_random_leader_is_a_player(self, make_players):
        state = avalon.initialize(make_players(6), AvalonSetup(), random.Random(9))
        assert state.quest_leader_id in {f"p{i}" for i in range(1, 7)}


class TestTeamSelection:
    def test_only_leader_picks(self, make_players):
        with pytest.raises(NotYourTurn):
            avalon.select_team(make_state(), "p2", ["p1", "p2"], make_players(5))

    def test_wrong_size(self, make_players):
        with pytest.raises(InvalidTeamSize):
            avalon.select_team(make_state(), "p1", ["p1", "p2", "p3"], make_players(5))

    def test_duplicate_members(self, make_players):
        with pytest.raises(InvalidTeamSize):
            avalon.select_team(make_state(), "p1", ["p1", "p1"], make_players(5))

    def test_member_outside_roster(self, make_players):
        with pytest.raises(InvalidTeamSize):
            avalon.select_team(make_state(), "p1", ["p1", "p9"], make_players(5))

    def test_wrong_phase(self, make_players):
        with pytest.raises(WrongPhase):
            avalon.select_team(make_state(phase="voting"), "p1", ["p1", "p2"], make_players(5))

    def test_moves_to_voting(self, make_players):
        state = avalon.select_team(make_state(), "p1", ["p1", "p2"], make_players(5))

        assert state.phase == "voting"
        assert state.phase_seq == 1
        assert state.quest_team_ids == ["p1", "p2"]


class TestVoting:
    def voting_state(self):
        return make_state(phase="voting", quest_team_ids=["p1", "p2"], phase_seq=1)

    def vote_all(self, state, players, approvals, voters=None):
        for player, approve in zip(voters or players, approvals):
            state = avalon.cast_vote(state, player.id, approve, players)
        return state

    def test_waits_for_every_connected_player(self, make_players):
        players = make_players(5)
        state = self.vote_all(self.voting_state(), players, [True] * 4, voters=players[:4])

        assert state.phase == "voting"
        assert state.phase_seq == 1
        assert set(state.pending_votes) == {"p1", "p2", "p3", "p4"}

    def test_majority_approves(self, make_players):
        players = make_players(5)
        state = self.vote_all(self.voting_state(), players, [True, True, True, False, False])

        assert state.phase == "results"
        assert state.pending_votes == {}
        assert state.last_votes == {"p1": True, "p2": True, "p3": True, "p4": False, "p5": False}
        assert state.quest_rejection_count == 0

    def test_tie_rejects_and_rotates_leader(self, make_players):
        players = make_players(5)
        players[4].connected = False
        state = self.vote_all(self.voting_state(), players, [True, True, False, False], voters=players[:4])

        assert state.phase == "quest"
        assert state.quest_rejection_count == 1
        assert state.quest_leader_id == "p2"
        assert state.quest_team_ids == []
        assert state.quest_number == 1

    def test_last_vote_wins(self, make_players):
        players = make_players(5)
        state = avalon.cast_vote(self.voting_state(), "p1", False, players)
        state = avalon.cast_vote(state, "p1", True, players)
        assert state.pending_votes == {"p1": True}

    def test_disconnected_player_cannot_vote(self, make_players):
        players = make_players(5)
        players[4].connected = False
        with pytest.raises(NotYourTurn):
            avalon.cast_vote(self.voting_state(), "p5", True, players)

    def test_fifth_rejection_hands_evil_the_game(self, make_players):
        players = make_players(5)
        state = self.voting_state().model_copy(update={"quest_rejection_count": 4})
        state = self.vote_all(state, players, [False] * 5)

        assert state.phase == "end"
        assert state.winner == "evil"
        assert state.quest_rejection_count == 5

    def test_tally_runs_when_the_last_voter_drops(self, make_players):
        players = make_players(5)
        state = self.vote_all(self.voting_state(), players, [True] * 4, voters=players[:4])
        assert avalon.complete_vote_if_ready(state, players) == state

        players[4].connected = False
        state = avalon.complete_vote_if_ready(state, players)
        assert state.phase == "results"
        assert state.last_votes == {"p1": True, "p2": True, "p3": True, "p4": True}

    def test_nothing_to_tally_without_votes(self, make_players):
        state = self.voting_state()
        assert avalon.complete_vote_if_ready(state, make_players(5, connected=False)) == state

    def test_leader_rotation_wraps(self, make_players):
        assert avalon.next_leader_id("p5", make_players(5)) == "p1"


class TestResults:
    def test_only_team_members_submit(self, make_players):
        state = make_state(phase="results", quest_team_ids=["p1", "p2"])
        with pytest.raises(NotYourTurn):
            avalon.submit_result(state, "p3", True, make_players(5), random.Random(1))

    def test_one_result_per_member(self, make_players):
        players = make_players(5)
        state = make_state(phase="results", quest_team_ids=["p1", "p2"])
        state = avalon.submit_result(state, "p1", True, players, random.Random(1))
        with pytest.raises(NotYourTurn):
            avalon.submit_result(state, "p1", False, players, random.Random(1))

    def test_single_fail_sinks_early_quest(self, make_players):
        players = make_players(5)
        state = make_state(phase="results", quest_team_ids=["p1", "p4"])
        state = avalon.submit_result(state, "p1", True, players, random.Random(1))
        state = avalon.submit_result(state, "p4", False, players, random.Random(1))

        assert state.phase == "revealing"
        assert state.completed_quests == [False]
        assert sorted(state.revealed_results) == [False, True]
        assert state.pending_results == {}

    def test_eight_players_fourth_quest_survives_one_fail(self, make_players):
        players = make_players(8)
        team = ["p1", "p2", "p3", "p4", "p5"]
        roles = {p.id: "servant" for p in players}
        roles.update({"p3": "assassin", "p6": "minion", "p7": "minion"})
        state = AvalonState(
            phase="results",
            quest_number=4,
            quest_leader_id="p1",
            quest_team_ids=team,
            completed_quests=[True, False, True],
            roles=roles,
        )
        rng = random.Random(4)
        for pid in team:
            state = avalon.submit_result(state, pid, pid != "p3", players, rng)

        assert rules.quest_fail_threshold(8, 4) == 2
        assert state.phase == "revealing"
        assert state.completed_quests == [True, False, True, True]
        assert sorted(state.revealed_results) == [False, True, True, True, True]

    def test_eight_players_fourth_quest_fails_on_two(self, make_players):
        players = make_players(8)
        team = ["p1", "p2", "p3", "p4", "p5"]
        state = AvalonState(phase="results", quest_number=4, quest_leader_id="p1", quest_team_ids=team)
        rng = random.Random(4)
        for pid in team:
            state = avalon.submit_result(state, pid, pid not in ("p2", "p3"), players, rng)

        assert state.completed_quests == [False]

    def test_reveal_order_is_shuffled(self, make_players):
        players = make_players(8)
        team = ["p1", "p2", "p3", "p4", "p5"]
        submitted = [True, False, True, True, False]
        orders = []
        for seed in range(10):
            state = AvalonState(phase="results", quest_number=4, quest_leader_id="p1", quest_team_ids=team)
            rng = random.Random(seed)
            for pid, success in zip(team, submitted):
                state = avalon.submit_result(state, pid, success, players, rng)
            orders.append(state.revealed_results)

        assert all(sorted(order) == sorted(submitted) for order in orders)
        assert any(order != submitted for order in orders)


class TestReveal:
    def revealing_state(self, completed, **changes):
        return make_state(phase="revealing", phase_seq=3, completed_quests=completed, **changes)

    def test_advances_to_next_quest(self, make_players):
        state = self.revealing_state([True], quest_rejection_count=2, revealed_results=[True, True])
        state = avalon.advance_after_reveal(state, make_players(5))

        assert state.phase == "quest"
        assert state.quest_number == 2
        assert state.quest_leader_id == "p2"
        assert state.quest_rejection_count == 0
        assert state.revealed_results is None
        assert state.phase_seq == 4

    def test_stale_trigger_is_rejected(self, make_players):
        with pytest.raises(StalePhase):
            avalon.advance_after_reveal(self.revealing_state([True]), make_players(5), phase_seq=2)

    def test_second_trigger_finds_a_new_phase(self, make_players):
        players = make_players(5)
        state = avalon.advance_after_reveal(self.revealing_state([True]), players, phase_seq=3)
        with pytest.raises(WrongPhase):
            avalon.advance_after_reveal(state, players, phase_seq=3)
        assert state.quest_number == 2

    def test_three_successes_call_the_assassin(self, make_players):
        state = avalon.advance_after_reveal(self.revealing_state([True, False, True, True]), make_players(5))
        assert state.phase == "assassinating"
        assert state.winner is None

    def test_three_successes_without_assassin_win_outright(self, make_players):
        roles = {"p1": "merlin", "p2": "servant", "p3": "servant", "p4": "minion", "p5": "minion"}
        state = self.revealing_state([True, True, True], roles=roles)
        state = avalon.advance_after_reveal(state, make_players(5))
        assert state.phase == "end"
        assert state.winner == "good"

    def test_three_fails_win_for_evil(self, make_players):
        state = avalon.advance_after_reveal(self.revealing_state([False, True, False, False]), make_players(5))
        assert state.phase == "end"
        assert state.winner == "evil"


class TestAssassination:
    def test_only_the_assassin_strikes(self, make_players):
        with pytest.raises(NotYourTurn):
            avalon.assassinate(make_state(phase="assassinating"), "p5", "p1", make_players(5))

    def test_hitting_merlin(self, make_players):
        state = avalon.assassinate(make_state(phase="assassinating"), "p4", "p1", make_players(5))
        assert state.phase == "end"
        assert state.winner == "evil"
        assert state.assassinated_player_id == "p1"

    def test_missing_merlin(self, make_players):
        state = avalon.assassinate(make_state(phase="assassinating"), "p4", "p2", make_players(5))
        assert state.winner == "good"

    def test_wrong_phase(self, make_players):
        with pytest.raises(WrongPhase):
            avalon.assassinate(make_state(), "p4", "p1", make_players(5))
