"""Relational backup of room state.

One row per party in the ``games`` table, keyed by party id. The row holds
the full room state as JSON and an ``active``/``inactive`` status so stale
parties can be skipped on recovery and their codes are never reused.
"""

from __future__ import annotations

import time
from typing import Optional

import structlog
from sqlalchemy import BigInteger, Column, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import PersistenceError

LOGGER = structlog.get_logger(__name__)

Base = declarative_base()

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"


class GameRecord(Base):
    __tablename__ = "games"

    party_id = Column(String(64), primary_key=True)  # "<gameKind>-<partyCode>"
    game_kind = Column(String(32), nullable=False, index=True)
    state_json = Column(Text, nullable=False)  # RoomState as camelCase JSON
    first_host_id = Column(String(64), nullable=True)  # party creator, preferred host
    status = Column(String(16), nullable=False, default=STATUS_ACTIVE)  # active | inactive
    updated_at = Column(BigInteger, nullable=False)  # epoch ms


def _now_ms() -> int:
    return int(time.time() * 1000)


class BackupStore:
    def __init__(self, url: str) -> None:
        kwargs = {}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection so every thread sees the same in-memory DB.
            kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
        elif url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}

        self.engine = create_engine(url, **kwargs)
        self._session = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def save(self, party_id: str, game_kind: str, state_json: str, first_host_id: Optional[str] = None) -> None:
        """Upsert the active row for ``party_id``."""

        try:
            with self._session.begin() as session:
                record = session.get(GameRecord, party_id)
                if record is None:
                    record = GameRecord(party_id=party_id, game_kind=game_kind)
                    session.add(record)
                record.state_json = state_json
                if first_host_id is not None:
                    record.first_host_id = first_host_id
                record.status = STATUS_ACTIVE
                record.updated_at = _now_ms()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"backup save failed for {party_id}: {exc}") from exc
        LOGGER.debug("backup.saved", party=party_id)

    def load_active(self, party_id: str) -> Optional[str]:
        try:
            with self._session() as session:
                record = session.get(GameRecord, party_id)
                if record is None or record.status != STATUS_ACTIVE:
                    return None
                return record.state_json
        except SQLAlchemyError as exc:
            raise PersistenceError(f"backup load failed for {party_id}: {exc}") from exc

    def first_host_id(self, party_id: str) -> Optional[str]:
        try:
            with self._session() as session:
                record = session.get(GameRecord, party_id)
                return record.first_host_id if record is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"backup load failed for {party_id}: {exc}") from exc

    def mark_inactive(self, party_id: str) -> None:
        try:
            with self._session.begin() as session:
                record = session.get(GameRecord, party_id)
                if record is not None:
                    record.status = STATUS_INACTIVE
                    record.updated_at = _now_ms()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"backup deactivate failed for {party_id}: {exc}") from exc
        LOGGER.info("backup.marked_inactive", party=party_id)

    def party_ids(self, game_kind: Optional[str] = None) -> set[str]:
        """Every party id ever backed up, active or not."""

        try:
            with self._session() as session:
                stmt = select(GameRecord.party_id)
                if game_kind is not None:
                    stmt = stmt.where(GameRecord.game_kind == game_kind)
                return set(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"backup listing failed: {exc}") from exc

    def dispose(self) -> None:
        self.engine.dispose()
