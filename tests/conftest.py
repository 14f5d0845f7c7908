import itertools
import random

import pytest

from gamenight.game.coordinator import LivenessSettings, PartyCoordinator
from gamenight.game.models import Player
from gamenight.realtime.protocol import parse_message
from gamenight.storage.snapshots import SnapshotStore


class FakeConnection:
    """In-memory stand-in for a client socket."""

    def __init__(self, connection_id):
        self.id = connection_id
        self.sent = []
        self.closed = False

    @property
    def is_open(self):
        return not self.closed

    def send(self, message):
        self.sent.append(message)

    def close(self):
        self.closed = True

    def messages(self, action):
        return [m for m in self.sent if m.get("action") == action]

    def last_state(self):
        states = self.messages("update_state")
        return states[-1] if states else None


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)


def build_players(count, connected=True):
    return [Player(id=f"p{i}", name=f"Player {i}", order=i, connected=connected) for i in range(1, count + 1)]


@pytest.fixture
def make_players():
    return build_players


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshots():
    return SnapshotStore()


@pytest.fixture
def make_coordinator(clock, snapshots):
    def _make(kind="avalon", code="1234", backup=None, seed=7):
        return PartyCoordinator(kind, code, snapshots, backup, LivenessSettings(), clock, random.Random(seed))

    return _make


@pytest.fixture
def send():
    def _send(coordinator, connection, payload):
        message = parse_message(payload)
        assert message is not None, f"unparseable test message {payload}"
        coordinator.handle_message(connection, message)

    return _send


@pytest.fixture
def connect(send):
    counter = itertools.count(1)

    def _connect(coordinator, player_id=None, name=None, tag=None):
        connection = FakeConnection(f"sid-{next(counter)}")
        coordinator.attach(connection)
        if player_id is not None:
            send(
                coordinator,
                connection,
                {"action": "register", "id": player_id, "name": name or player_id.upper(), "sessionTag": tag},
            )
        return connection

    return _connect


@pytest.fixture
def start_avalon(connect, send):
    """Five (or ``count``) registered players, p1 as host, game started with p1 leading."""

    def _start(coordinator, count=5, characters=("merlin", "assassin")):
        coordinator.claim_host("p1")
        conns = {f"p{i}": connect(coordinator, f"p{i}") for i in range(1, count + 1)}
        send(
            coordinator,
            conns["p1"],
            {"action": "start_game", "selectedCharacters": list(characters), "firstPlayerFlagActive": True},
        )
        return conns

    return _start
