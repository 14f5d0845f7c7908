from __future__ import annotations

import random
from threading import RLock
from typing import Callable

import structlog

from ..errors import InvalidParameter, PartyCodeExhausted, PersistenceError
from ..storage.backup import BackupStore
from ..storage.snapshots import SnapshotStore
from .coordinator import LivenessSettings, PartyCoordinator, now_ms
from .dispatch import parse_kind
from .models import GameKind, party_id_for

LOGGER = structlog.get_logger(__name__)

CODE_ATTEMPTS = 20

_lock = RLock()
_parties: dict[str, PartyCoordinator] = {}

_snapshots = SnapshotStore()
_backup: BackupStore | None = None
_settings = LivenessSettings()
_clock: Callable[[], int] = now_ms
_rng = random.Random()


def configure(
    snapshots: SnapshotStore | None = None,
    backup: BackupStore | None = None,
    settings: LivenessSettings | None = None,
    clock: Callable[[], int] | None = None,
    rng: random.Random | None = None,
) -> None:
    """Swap the stores behind the registry. Forgets every live party."""

    global _snapshots, _backup, _settings, _clock, _rng
    with _lock:
        for coordinator in list(_parties.values()):
            coordinator.closed = True
        _parties.clear()
        _snapshots = snapshots or SnapshotStore()
        _backup = backup
        _settings = settings or LivenessSettings()
        _clock = clock or now_ms
        _rng = rng or random.Random()


def backup_store() -> BackupStore | None:
    return _backup


def _kind(game_kind: GameKind | str) -> GameKind:
    kind = parse_kind(game_kind)
    if kind is None:
        raise InvalidParameter(f"Game type '{game_kind}' not supported")
    return kind


def _new_coordinator(kind: GameKind, code: str) -> PartyCoordinator:
    return PartyCoordinator(kind, code, _snapshots, _backup, _settings, _clock, random.Random(_rng.random()))


def _taken_ids(kind: GameKind) -> set[str]:
    taken = {party_id for party_id, c in _parties.items() if c.game_kind == kind}
    taken.update(pid for pid in _snapshots.party_ids() if pid.startswith(f"{kind.value}-"))
    if _backup is not None:
        try:
            taken.update(_backup.party_ids(kind.value))
        except PersistenceError as exc:
            LOGGER.warning("service.backup_unavailable", error=str(exc))
    return taken


def create_party(game_kind: GameKind | str, creator_id: str) -> PartyCoordinator:
    """Open a party under a fresh 4-digit code; ``creator_id`` becomes its first host."""

    kind = _kind(game_kind)
    with _lock:
        taken = _taken_ids(kind)
        for _ in range(CODE_ATTEMPTS):
            code = str(_rng.randint(1000, 9999))
            if party_id_for(kind, code) not in taken:
                break
        else:
            LOGGER.error("service.code_exhausted", game=kind.value, attempts=CODE_ATTEMPTS)
            raise PartyCodeExhausted("Failed to create party. Please try again.")

        coordinator = _new_coordinator(kind, code)
        _parties[coordinator.party_id] = coordinator
    coordinator.claim_host(creator_id)
    return coordinator


def get_party(game_kind: GameKind | str, party_code: str) -> PartyCoordinator | None:
    kind = parse_kind(game_kind)
    if kind is None:
        return None
    with _lock:
        coordinator = _parties.get(party_id_for(kind, party_code))
        if coordinator is not None and coordinator.closed:
            _parties.pop(coordinator.party_id, None)
            return None
        return coordinator


def find_or_restore(game_kind: GameKind | str, party_code: str) -> PartyCoordinator | None:
    """Live coordinator for the party, rebuilt from snapshot or backup if needed."""

    kind = parse_kind(game_kind)
    if kind is None:
        return None
    with _lock:
        coordinator = get_party(kind, party_code)
        if coordinator is not None:
            return coordinator
        coordinator = PartyCoordinator.restore(
            kind, party_code, _snapshots, _backup, _settings, _clock, random.Random(_rng.random())
        )
        if coordinator is None:
            return None
        _parties[coordinator.party_id] = coordinator
        return coordinator


def delete_party(game_kind: GameKind | str, party_code: str) -> bool:
    kind = parse_kind(game_kind)
    if kind is None:
        return False
    with _lock:
        coordinator = _parties.pop(party_id_for(kind, party_code), None)
    if coordinator is None:
        return False
    coordinator.teardown()
    return True


def forget_party(coordinator: PartyCoordinator) -> None:
    """Drop a coordinator that has already torn itself down."""

    with _lock:
        if _parties.get(coordinator.party_id) is coordinator:
            del _parties[coordinator.party_id]


def list_parties() -> list[PartyCoordinator]:
    with _lock:
        return [c for c in _parties.values() if not c.closed]
