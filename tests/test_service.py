"""Tests for the party registry."""

import random

import pytest

from gamenight.errors import InvalidParameter, PartyCodeExhausted
from gamenight.game import service
from gamenight.storage.backup import BackupStore
from gamenight.storage.snapshots import SnapshotStore


class FixedCodes(random.Random):
    """Always draws the same party code."""

    def randint(self, a, b):
        return 1234


@pytest.fixture(autouse=True)
def fresh_registry(clock):
    service.configure(snapshots=SnapshotStore(), clock=clock, rng=random.Random(3))
    yield
    service.configure()


class TestCreateParty:
    def test_creates_four_digit_code(self):
        coordinator = service.create_party("avalon", "p1")

        assert len(coordinator.party_code) == 4
        assert 1000 <= int(coordinator.party_code) <= 9999
        assert coordinator.meta.first_host_id == "p1"
        assert service.get_party("avalon", coordinator.party_code) is coordinator

    def test_kind_is_normalized(self):
        coordinator = service.create_party(" Codenames ", "p1")
        assert coordinator.party_id.startswith("codenames-")

    def test_unsupported_kind(self):
        with pytest.raises(InvalidParameter):
            service.create_party("chess", "p1")

    def test_codes_are_unique(self):
        codes = {service.create_party("avalon", f"p{i}").party_code for i in range(30)}
        assert len(codes) == 30
        assert len(service.list_parties()) == 30

    def test_same_code_allowed_across_games(self, clock):
        service.configure(snapshots=SnapshotStore(), clock=clock, rng=FixedCodes())
        avalon = service.create_party("avalon", "p1")
        codenames = service.create_party("codenames", "p1")
        assert avalon.party_code == codenames.party_code == "1234"

    def test_exhaustion(self, clock):
        service.configure(snapshots=SnapshotStore(), clock=clock, rng=FixedCodes())
        service.create_party("avalon", "p1")
        with pytest.raises(PartyCodeExhausted):
            service.create_party("avalon", "p2")

    def test_backed_up_codes_are_never_reused(self, clock):
        backup = BackupStore("sqlite://")
        backup.save("avalon-1234", "avalon", "{}")
        backup.mark_inactive("avalon-1234")
        service.configure(snapshots=SnapshotStore(), backup=backup, clock=clock, rng=FixedCodes())

        with pytest.raises(PartyCodeExhausted):
            service.create_party("avalon", "p1")


class TestLookup:
    def test_unknown_party(self):
        assert service.get_party("avalon", "0000") is None
        assert service.find_or_restore("avalon", "0000") is None
        assert service.find_or_restore("chess", "0000") is None

    def test_restores_a_forgotten_party_from_its_snapshot(self):
        coordinator = service.create_party("avalon", "p1")
        service.forget_party(coordinator)
        assert service.get_party("avalon", coordinator.party_code) is None

        restored = service.find_or_restore("avalon", coordinator.party_code)
        assert restored is not coordinator
        assert restored.meta.first_host_id == "p1"
        assert service.get_party("avalon", coordinator.party_code) is restored

    def test_closed_coordinators_are_dropped(self):
        coordinator = service.create_party("avalon", "p1")
        coordinator.teardown()
        assert service.get_party("avalon", coordinator.party_code) is None
        assert service.list_parties() == []

    def test_delete_party(self):
        coordinator = service.create_party("codenames", "p1")
        assert service.delete_party("codenames", coordinator.party_code) is True
        assert coordinator.closed
        assert service.find_or_restore("codenames", coordinator.party_code) is None
        assert service.delete_party("codenames", coordinator.party_code) is False
