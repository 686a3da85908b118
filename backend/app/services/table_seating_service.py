"""
Table integration: open/close tables, seat lookups and seating waitlist players.

Seat availability is checked here before WaitlistStatusManager.seat_player is called; the partial
unique index on open player sessions rejects a seat taken by a concurrent request at commit time.
"""
import logging

from sqlalchemy.orm import Session

from app.core.errors import InactiveGames, NotFound, SeatUnavailable, TableAlreadyOpen
from app.core.status import WaitlistStatus
from app.models.game import Game
from app.models.player import Player
from app.models.player_session import PlayerSession
from app.models.poker_table import PokerTable
from app.models.table_session import TableSession
from app.services.waitlist import SeatResult, SqlWaitlistStore, WaitlistPositionManager, WaitlistStatusManager
from app.services.waitlist.expiry import as_utc

logger = logging.getLogger(__name__)


class TableSeatingService:
    def __init__(self, store: SqlWaitlistStore, status_manager: WaitlistStatusManager):
        self.store = store
        self.status_manager = status_manager
        self.clock = status_manager.clock

    @property
    def db(self) -> Session:
        return self.store.db

    def get_table(self, table_id: str, room_id: str | None = None) -> PokerTable:
        q = self.db.query(PokerTable).filter(PokerTable.id == table_id)
        if room_id is not None:
            q = q.filter(PokerTable.room_id == room_id)
        table = q.first()
        if table is None:
            raise NotFound("Table not found")
        return table

    def open_table(self, table_id: str, game_id: str | None = None, room_id: str | None = None) -> TableSession:
        table = self.get_table(table_id, room_id)
        if self.store.get_active_table_session(table_id) is not None:
            raise TableAlreadyOpen("Table already has an open session")
        game_id = game_id or table.game_id
        if not game_id:
            raise NotFound("Game not found")
        session = TableSession(
            table_id=table.id,
            game_id=game_id,
            room_id=table.room_id,
            start_time=self.clock(),
        )
        self.db.add(session)
        self.store.commit()
        logger.info("Opened table %s for game %s", table.id, game_id)
        return session

    def close_table(self, table_id: str, room_id: str | None = None) -> int:
        """End the open session and every seat in it. Returns the number of players unseated."""
        self.get_table(table_id, room_id)
        session = self.store.get_active_table_session(table_id)
        if session is None:
            raise NotFound("No active table session")
        now = self.clock()
        open_seats = self._open_player_sessions(session.id)
        for ps in open_seats:
            ps.end_time = now
        session.end_time = now
        self.store.commit()
        logger.info("Closed table %s (%s players unseated)", table_id, len(open_seats))
        return len(open_seats)

    def get_available_seats(self, table_id: str) -> list[int]:
        table = self.get_table(table_id)
        session = self.store.get_active_table_session(table_id)
        if session is None:
            return []
        taken = {ps.seat_number for ps in self._open_player_sessions(session.id)}
        return [n for n in range(1, table.seat_count + 1) if n not in taken]

    def is_seat_available(self, table_id: str, seat_number: int) -> bool:
        return seat_number in self.get_available_seats(table_id)

    def assign_player_to_table(
        self,
        entry_id: str,
        table_id: str,
        seat_number: int,
        notes: str | None = None,
        cancel_other_entries: bool = True,
    ) -> SeatResult:
        if self.status_manager.get_entry(entry_id) is None:
            raise NotFound("Waitlist entry not found")
        table = self.get_table(table_id)
        if seat_number < 1 or seat_number > table.seat_count:
            raise SeatUnavailable(f"Seat {seat_number} does not exist at this table")
        if not self.is_seat_available(table_id, seat_number):
            raise SeatUnavailable("Seat is not available")
        return self.status_manager.seat_player(
            entry_id, table_id, seat_number, notes=notes, cancel_other_entries=cancel_other_entries
        )

    def remove_player_from_table(
        self, player_session_id: str, add_to_waitlist: bool = False, game_id: str | None = None
    ) -> PlayerSession:
        ps = self.db.query(PlayerSession).filter(PlayerSession.id == player_session_id).first()
        if ps is None:
            raise NotFound("Player session not found")
        requeue = add_to_waitlist and bool(game_id)
        room_id = None
        if requeue:
            table_session = self.db.query(TableSession).filter(TableSession.id == ps.table_session_id).first()
            room_id = table_session.room_id if table_session else None
            game = self.db.query(Game).filter(Game.id == game_id, Game.room_id == room_id).first()
            if game is None:
                raise NotFound("Game not found")
            if not game.is_active:
                raise InactiveGames([game.name])

        if ps.end_time is None:
            ps.end_time = self.clock()
        self.store.commit()
        logger.info("Player %s left seat %s (session %s)", ps.player_id, ps.seat_number, ps.id)

        if requeue:
            try:
                self._readd_to_waitlist(ps.player_id, game_id, room_id)
            except Exception as e:
                logger.warning("Could not put player %s back on the waitlist: %s", ps.player_id, e, exc_info=True)
                self.store.rollback()
        return ps

    def get_table_occupancy(self, table_id: str) -> dict:
        table = self.get_table(table_id)
        session = self.store.get_active_table_session(table_id)
        players = []
        if session is not None:
            seats = self._open_player_sessions(session.id)
            aliases = {
                p.id: p.alias
                for p in self.db.query(Player).filter(Player.id.in_([s.player_id for s in seats])).all()
            }
            players = [
                {
                    "player_session_id": s.id,
                    "id": s.player_id,
                    "alias": aliases.get(s.player_id),
                    "seat_number": s.seat_number,
                    "start_time": as_utc(s.start_time).isoformat() if s.start_time else None,
                }
                for s in seats
            ]
        return {
            "table_id": table.id,
            "is_open": session is not None,
            "total_seats": table.seat_count,
            "occupied_seats": len(players),
            "available_seats": table.seat_count - len(players),
            "players": players,
        }

    def find_next_available_seat(self, game_id: str) -> dict | None:
        """First free seat across the game's active tables, in table-name order."""
        tables = (
            self.db.query(PokerTable)
            .filter(PokerTable.game_id == game_id, PokerTable.is_active.is_(True))
            .order_by(PokerTable.name.asc(), PokerTable.id.asc())
            .all()
        )
        for table in tables:
            seats = self.get_available_seats(table.id)
            if seats:
                return {"table_id": table.id, "table_name": table.name, "seat_number": seats[0]}
        return None

    def auto_assign_next_player(self, room_id: str, game_id: str) -> tuple[SeatResult, str]:
        """
        Seat the next player for the game in the first free seat. A player already notified for
        this game goes first; otherwise the head of the waiting queue is notified and seated.
        Returns (seat result, player alias).
        """
        seat = self.find_next_available_seat(game_id)
        if seat is None:
            raise SeatUnavailable("No available seats for this game")

        notified = self.store.list_entries(room_id=room_id, game_id=game_id, statuses=[WaitlistStatus.NOTIFIED])
        if notified:
            entry = min(notified, key=lambda e: (as_utc(e.notified_at) or as_utc(e.created_at), e.id))
        else:
            queue = [e for e in WaitlistPositionManager(self.store).get_queue(game_id) if e.room_id == room_id]
            if not queue:
                raise NotFound("No players waiting for this game")
            entry = queue[0]
            self.status_manager.notify_player(entry.id)

        result = self.assign_player_to_table(entry.id, seat["table_id"], seat["seat_number"])
        player = self.db.query(Player).filter(Player.id == entry.player_id).first()
        alias = (player.alias if player else None) or "Unknown Player"
        return result, alias

    def _open_player_sessions(self, table_session_id: str) -> list[PlayerSession]:
        return (
            self.db.query(PlayerSession)
            .filter(PlayerSession.table_session_id == table_session_id, PlayerSession.end_time.is_(None))
            .order_by(PlayerSession.seat_number.asc())
            .all()
        )

    def _readd_to_waitlist(self, player_id: str, game_id: str, room_id: str | None) -> None:
        now = self.clock()
        position = WaitlistPositionManager(self.store).next_position(game_id)
        entries = self.store.add_entries(
            [
                {
                    "player_id": player_id,
                    "game_id": game_id,
                    "room_id": room_id,
                    "status": WaitlistStatus.WAITING,
                    "position": position,
                    "entry_method": "inperson",
                    "created_at": now,
                    "checked_in_at": now,
                    "updated_at": now,
                }
            ]
        )
        self.store.commit()
        logger.info("Player %s re-added to game %s waitlist at position %s (entry %s)", player_id, game_id, position, entries[0].id)
