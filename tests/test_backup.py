import pytest

from gamenight.errors import PersistenceError
from gamenight.storage.backup import Base, BackupStore
from gamenight.storage.snapshots import SnapshotStore


@pytest.fixture
def store():
    backup = BackupStore("sqlite://")
    yield backup
    backup.dispose()


class TestBackupStore:
    def test_save_and_load(self, store):
        store.save("avalon-1234", "avalon", '{"a": 1}')
        assert store.load_active("avalon-1234") == '{"a": 1}'

    def test_save_overwrites(self, store):
        store.save("avalon-1234", "avalon", '{"a": 1}')
        store.save("avalon-1234", "avalon", '{"a": 2}')
        assert store.load_active("avalon-1234") == '{"a": 2}'
        assert store.party_ids() == {"avalon-1234"}

    def test_inactive_rows_are_hidden_but_listed(self, store):
        store.save("avalon-1234", "avalon", "{}")
        store.mark_inactive("avalon-1234")

        assert store.load_active("avalon-1234") is None
        assert store.party_ids() == {"avalon-1234"}

    def test_saving_again_reactivates(self, store):
        store.save("avalon-1234", "avalon", "{}")
        store.mark_inactive("avalon-1234")
        store.save("avalon-1234", "avalon", '{"b": 1}')
        assert store.load_active("avalon-1234") == '{"b": 1}'

    def test_filter_by_kind(self, store):
        store.save("avalon-1234", "avalon", "{}")
        store.save("codenames-1234", "codenames", "{}")
        assert store.party_ids("codenames") == {"codenames-1234"}

    def test_first_host_is_kept_across_saves(self, store):
        store.save("avalon-1234", "avalon", "{}", first_host_id="p1")
        store.save("avalon-1234", "avalon", '{"a": 1}')
        assert store.first_host_id("avalon-1234") == "p1"
        assert store.first_host_id("avalon-9999") is None

    def test_missing_row(self, store):
        assert store.load_active("avalon-9999") is None
        store.mark_inactive("avalon-9999")

    def test_database_errors_are_wrapped(self, store):
        Base.metadata.drop_all(store.engine)
        with pytest.raises(PersistenceError):
            store.save("avalon-1234", "avalon", "{}")
        with pytest.raises(PersistenceError):
            store.load_active("avalon-1234")


class TestSnapshotStore:
    def test_put_get_delete(self):
        snapshots = SnapshotStore()
        snapshots.put("avalon-1234", "room", "{}")
        snapshots.put("avalon-1234", "meta", "{}")
        assert snapshots.get("avalon-1234", "room") == "{}"
        assert snapshots.party_ids() == ["avalon-1234"]

        snapshots.delete_all("avalon-1234")
        assert snapshots.get("avalon-1234", "room") is None
        assert snapshots.party_ids() == []
