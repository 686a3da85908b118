"""
Storage collaborator for the waitlist core.

WaitlistStore is the contract the status manager, sweeper and position manager depend on;
SqlWaitlistStore implements it over one SQLAlchemy Session. Writes are staged in the session
and become durable on commit(); a failed commit is rolled back and raised as PersistenceFailure.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, Protocol

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import PersistenceFailure
from app.core.status import EXPIRING_STATUSES, WaitlistStatus
from app.models.player_session import PlayerSession
from app.models.table_session import TableSession
from app.models.waitlist_entry import WaitlistEntry

logger = logging.getLogger(__name__)


class WaitlistStore(Protocol):
    """CRUD + filtered queries over waitlist_entries, table_sessions and player_sessions."""

    def get_entry(self, entry_id: str) -> WaitlistEntry | None:
        ...

    def list_entries(
        self,
        *,
        room_id: str | None = None,
        game_id: str | None = None,
        player_id: str | None = None,
        statuses: Iterable[WaitlistStatus] | None = None,
        exclude_ids: Iterable[str] | None = None,
    ) -> list[WaitlistEntry]:
        ...

    def list_recently_closed(self, room_id: str, since: datetime) -> list[WaitlistEntry]:
        ...

    def list_room_ids_with_expiring_entries(self) -> list[str]:
        ...

    def update_entry(self, entry_id: str, values: dict[str, Any]) -> WaitlistEntry | None:
        ...

    def bulk_update_entries(
        self,
        entry_ids: Iterable[str],
        values: dict[str, Any],
        only_statuses: Iterable[WaitlistStatus] | None = None,
    ) -> list[str]:
        """Apply `values` to the given entries still in `only_statuses`; returns the ids actually changed."""
        ...

    def add_entries(self, rows: list[dict[str, Any]]) -> list[WaitlistEntry]:
        ...

    def get_active_table_session(self, table_id: str) -> TableSession | None:
        ...

    def add_player_session(
        self, *, table_session_id: str, player_id: str, seat_number: int, start_time: datetime
    ) -> PlayerSession:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


class SqlWaitlistStore:
    def __init__(self, db: Session):
        self.db = db

    def get_entry(self, entry_id: str) -> WaitlistEntry | None:
        return self.db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id).first()

    def list_entries(
        self,
        *,
        room_id: str | None = None,
        game_id: str | None = None,
        player_id: str | None = None,
        statuses: Iterable[WaitlistStatus] | None = None,
        exclude_ids: Iterable[str] | None = None,
    ) -> list[WaitlistEntry]:
        q = self.db.query(WaitlistEntry)
        if room_id is not None:
            q = q.filter(WaitlistEntry.room_id == room_id)
        if game_id is not None:
            q = q.filter(WaitlistEntry.game_id == game_id)
        if player_id is not None:
            q = q.filter(WaitlistEntry.player_id == player_id)
        if statuses is not None:
            q = q.filter(WaitlistEntry.status.in_(list(statuses)))
        if exclude_ids:
            q = q.filter(WaitlistEntry.id.notin_(list(exclude_ids)))
        return q.order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc()).all()

    def list_recently_closed(self, room_id: str, since: datetime) -> list[WaitlistEntry]:
        """Cancelled/expired entries closed since `since` (or with no close time), newest first."""
        return (
            self.db.query(WaitlistEntry)
            .filter(
                WaitlistEntry.room_id == room_id,
                WaitlistEntry.status.in_([WaitlistStatus.CANCELLED, WaitlistStatus.EXPIRED]),
                (WaitlistEntry.cancelled_at >= since) | WaitlistEntry.cancelled_at.is_(None),
            )
            .order_by(WaitlistEntry.cancelled_at.desc().nullsfirst())
            .all()
        )

    def list_room_ids_with_expiring_entries(self) -> list[str]:
        rows = (
            self.db.query(WaitlistEntry.room_id)
            .filter(WaitlistEntry.status.in_(list(EXPIRING_STATUSES)), WaitlistEntry.room_id.isnot(None))
            .distinct()
            .all()
        )
        return sorted(r[0] for r in rows)

    def update_entry(self, entry_id: str, values: dict[str, Any]) -> WaitlistEntry | None:
        entry = self.get_entry(entry_id)
        if entry is None:
            return None
        for key, value in values.items():
            setattr(entry, key, value)
        self._flush()
        return entry

    def bulk_update_entries(
        self,
        entry_ids: Iterable[str],
        values: dict[str, Any],
        only_statuses: Iterable[WaitlistStatus] | None = None,
    ) -> list[str]:
        ids = list(entry_ids)
        if not ids:
            return []
        stmt = update(WaitlistEntry).where(WaitlistEntry.id.in_(ids))
        if only_statuses is not None:
            stmt = stmt.where(WaitlistEntry.status.in_(list(only_statuses)))
        # RETURNING reports only the rows the status guard let through
        stmt = stmt.values(values).returning(WaitlistEntry.id)
        try:
            result = self.db.execute(stmt, execution_options={"synchronize_session": "fetch"})
            return [row[0] for row in result]
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure("Failed to update entries") from e

    def add_entries(self, rows: list[dict[str, Any]]) -> list[WaitlistEntry]:
        entries = [WaitlistEntry(**row) for row in rows]
        self.db.add_all(entries)
        self._flush()
        return entries

    def get_active_table_session(self, table_id: str) -> TableSession | None:
        return (
            self.db.query(TableSession)
            .filter(TableSession.table_id == table_id, TableSession.end_time.is_(None))
            .order_by(TableSession.start_time.desc())
            .first()
        )

    def add_player_session(
        self, *, table_session_id: str, player_id: str, seat_number: int, start_time: datetime
    ) -> PlayerSession:
        row = PlayerSession(
            table_session_id=table_session_id,
            player_id=player_id,
            seat_number=seat_number,
            start_time=start_time,
        )
        self.db.add(row)
        self._flush()
        return row

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Waitlist store commit failed: %s", e, exc_info=True)
            raise PersistenceFailure("Failed to update entry") from e

    def rollback(self) -> None:
        self.db.rollback()

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure("Failed to write waitlist changes") from e
