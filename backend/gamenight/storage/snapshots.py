from __future__ import annotations

from threading import RLock
from typing import Dict, Optional


class SnapshotStore:
    """Fast per-party key/value store for room snapshots.

    Values are JSON strings so a coordinator can always be rebuilt with
    ``model_validate_json``; nothing holds a reference to live state.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._data: Dict[str, Dict[str, str]] = {}

    def put(self, party_id: str, key: str, value: str) -> None:
        with self._lock:
            self._data.setdefault(party_id, {})[key] = value

    def get(self, party_id: str, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(party_id, {}).get(key)

    def delete_all(self, party_id: str) -> None:
        with self._lock:
            self._data.pop(party_id, None)

    def party_ids(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())
