"""
Player-facing waitlist operations: join, cancel, status lookup, plus room analytics for operators.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.core.constants import (
    ANALYTICS_ENTRY_LIMIT,
    ANALYTICS_PEAK_HOURS,
    ANALYTICS_TIME_RANGES,
    ANALYTICS_TOP_GAMES,
)
from app.core.errors import InactiveGames, NotFound
from app.core.status import ACTIVE_STATUSES, CancelledBy, WaitlistStatus, status_config
from app.models.game import Game
from app.models.player import Player
from app.models.room import Room
from app.models.waitlist_entry import WaitlistEntry
from app.services.waitlist import (
    ExpiryPolicy,
    SqlWaitlistStore,
    WaitlistNotifier,
    WaitlistPositionManager,
    WaitlistStatusManager,
    estimated_wait_minutes,
    notify_safely,
    utcnow,
)
from app.services.waitlist.expiry import as_utc

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def _game_dict(game: Game | None) -> dict | None:
    if game is None:
        return None
    return {
        "id": game.id,
        "name": game.name,
        "game_type": game.game_type,
        "small_blind": game.small_blind,
        "big_blind": game.big_blind,
    }


def serialize_entry(entry: WaitlistEntry, game: Game | None = None, player: Player | None = None) -> dict:
    status = WaitlistStatus(entry.status)
    row = {
        "id": entry.id,
        "player_id": entry.player_id,
        "game_id": entry.game_id,
        "room_id": entry.room_id,
        "status": status.value,
        "status_label": status_config(status).label,
        "position": entry.position,
        "entry_method": entry.entry_method,
        "notes": entry.notes,
        "created_at": _iso(entry.created_at),
        "checked_in_at": _iso(entry.checked_in_at),
        "notified_at": _iso(entry.notified_at),
        "cancelled_at": _iso(entry.cancelled_at),
        "cancelled_by": entry.cancelled_by.value if entry.cancelled_by else None,
        "updated_at": _iso(entry.updated_at),
    }
    if game is not None:
        row["game"] = _game_dict(game)
    if player is not None:
        row["player"] = {"id": player.id, "alias": player.alias}
    return row


def join_waitlist(
    db: Session,
    room_id: str,
    player_id: str,
    game_ids: list[str],
    notes: str | None = None,
    keep_other_entries: bool = True,
    notifier: WaitlistNotifier | None = None,
    clock=utcnow,
) -> list[WaitlistEntry]:
    """Create one calledin entry per game. All games must belong to the room and be active."""
    if not game_ids:
        raise NotFound("One or more games not found")
    room = db.query(Room).filter(Room.id == room_id).first()
    if room is None:
        raise NotFound("Room not found")
    unique_ids = list(dict.fromkeys(game_ids))
    games = db.query(Game).filter(Game.room_id == room_id, Game.id.in_(unique_ids)).all()
    if len(games) != len(unique_ids):
        raise NotFound("One or more games not found")
    inactive = [g.name for g in games if not g.is_active]
    if inactive:
        raise InactiveGames(inactive)

    store = SqlWaitlistStore(db)
    now = clock()
    cancelled: dict[str, WaitlistStatus] = {}
    if not keep_other_entries:
        existing = store.list_entries(player_id=player_id, statuses=ACTIVE_STATUSES)
        previous = {e.id: e.status for e in existing}
        changed = store.bulk_update_entries(
            list(previous),
            {
                "status": WaitlistStatus.CANCELLED,
                "cancelled_at": now,
                "cancelled_by": CancelledBy.PLAYER,
                "updated_at": now,
            },
            only_statuses=ACTIVE_STATUSES,
        )
        cancelled = {i: previous[i] for i in previous if i in set(changed)}

    entries = store.add_entries(
        [
            {
                "player_id": player_id,
                "game_id": game_id,
                "room_id": room_id,
                "status": WaitlistStatus.CALLEDIN,
                "notes": notes or None,
                "entry_method": "callin",
                "created_at": now,
                "updated_at": now,
            }
            for game_id in unique_ids
        ]
    )
    store.commit()
    logger.info("Player %s joined %s waitlist(s) in room %s", player_id, len(entries), room_id)

    if notifier is not None:
        for entry_id, old_status in cancelled.items():
            notify_safely(notifier.notify_status_change, entry_id, WaitlistStatus.CANCELLED, old_status)
    return entries


def cancel_player_entry(
    db: Session,
    room_id: str,
    player_id: str,
    entry_id: str,
    notifier: WaitlistNotifier | None = None,
    clock=utcnow,
) -> WaitlistEntry:
    entry = (
        db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.id == entry_id,
            WaitlistEntry.player_id == player_id,
            WaitlistEntry.room_id == room_id,
        )
        .first()
    )
    if entry is None:
        raise NotFound("Waitlist entry not found")
    manager = WaitlistStatusManager(SqlWaitlistStore(db), notifier, clock=clock)
    return manager.cancel_entry(entry_id, cancelled_by=CancelledBy.PLAYER)


def get_player_status(
    db: Session,
    room_id: str,
    player_id: str,
    minutes_per_slot: int | None = None,
    policy: ExpiryPolicy | None = None,
    clock=utcnow,
) -> list[dict]:
    """Player's active entries in the room, with queue rank, wait estimate and deadline."""
    store = SqlWaitlistStore(db)
    policy = policy or ExpiryPolicy.from_settings()
    positions = WaitlistPositionManager(store)
    now = clock()
    entries = store.list_entries(room_id=room_id, player_id=player_id, statuses=ACTIVE_STATUSES)
    games = {g.id: g for g in db.query(Game).filter(Game.id.in_([e.game_id for e in entries])).all()}

    rows = []
    for entry in entries:
        row = serialize_entry(entry, games.get(entry.game_id))
        row["queue_position"] = None
        row["estimated_wait_minutes"] = None
        if entry.status == WaitlistStatus.WAITING:
            rank = positions.get_position(entry.id)
            row["queue_position"] = rank
            row["estimated_wait_minutes"] = estimated_wait_minutes((rank or 1) - 1, minutes_per_slot)
        row["deadline"] = _iso(policy.deadline(entry))
        row["minutes_remaining"] = policy.remaining_minutes(entry, now) if row["deadline"] else None
        rows.append(row)
    rows.sort(key=lambda r: (r["position"] is None, r["position"] or 0, r["created_at"] or ""))
    return rows


def _analytics_window(
    time_range: str, start: datetime | None, end: datetime | None, now: datetime
) -> tuple[datetime, datetime]:
    if start is not None and end is not None:
        return as_utc(start), as_utc(end)
    days = ANALYTICS_TIME_RANGES[time_range]
    return now - timedelta(days=days), now


def get_waitlist_analytics(
    db: Session,
    room_id: str,
    time_range: str = "7d",
    game_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    clock=utcnow,
) -> dict:
    if time_range not in ANALYTICS_TIME_RANGES:
        raise ValueError(f"time_range must be one of {sorted(ANALYTICS_TIME_RANGES)}")
    window_start, window_end = _analytics_window(time_range, start, end, clock())

    q = db.query(WaitlistEntry, Game).outerjoin(Game, Game.id == WaitlistEntry.game_id).filter(
        WaitlistEntry.room_id == room_id,
        WaitlistEntry.created_at >= window_start,
        WaitlistEntry.created_at <= window_end,
    )
    if game_id:
        q = q.filter(WaitlistEntry.game_id == game_id)
    rows = q.limit(ANALYTICS_ENTRY_LIMIT).all()

    return {
        "analytics": compute_analytics(rows),
        "metadata": {
            "time_range": time_range,
            "game_id": game_id,
            "start_date": window_start.isoformat(),
            "end_date": window_end.isoformat(),
            "total_entries": len(rows),
        },
    }


def compute_analytics(rows: list[tuple[WaitlistEntry, Game | None]]) -> dict:
    """Aggregate (entry, game) rows into breakdowns and trend figures."""
    total = len(rows)
    if total == 0:
        return {
            "total_entries": 0,
            "status_breakdown": {},
            "game_breakdown": {},
            "hourly_distribution": {},
            "daily_trends": {},
            "average_wait_time": 0,
            "conversion_rate": 0,
            "peak_hours": [],
            "top_games": [],
            "average_entries_per_hour": 0,
            "most_active_day": None,
            "least_active_day": None,
        }

    statuses = Counter()
    games = Counter()
    hours = Counter()
    days = Counter()
    for entry, game in rows:
        statuses[entry.status.value if entry.status else "unknown"] += 1
        games[game.name if game else "Unknown"] += 1
        created = as_utc(entry.created_at)
        if created is not None:
            hours[f"{created.hour:02d}:00"] += 1
            days[created.date().isoformat()] += 1

    waiting = statuses.get(WaitlistStatus.WAITING.value, 0)
    seated = statuses.get(WaitlistStatus.SEATED.value, 0)
    by_count_desc = sorted(days.items(), key=lambda kv: -kv[1])
    by_count_asc = sorted(days.items(), key=lambda kv: kv[1])

    return {
        "total_entries": total,
        "status_breakdown": dict(statuses),
        "game_breakdown": dict(games),
        "hourly_distribution": dict(hours),
        "daily_trends": dict(days),
        # Rough figure: one slot per waiting entry
        "average_wait_time": waiting * settings.waitlist_minutes_per_slot,
        "conversion_rate": round(seated / total * 100, 2),
        "peak_hours": [h for h, _ in sorted(hours.items(), key=lambda kv: -kv[1])[:ANALYTICS_PEAK_HOURS]],
        "top_games": [
            {"name": name, "count": count}
            for name, count in sorted(games.items(), key=lambda kv: -kv[1])[:ANALYTICS_TOP_GAMES]
        ],
        "average_entries_per_hour": round(total / len(hours), 2) if hours else 0,
        "most_active_day": by_count_desc[0][0] if by_count_desc else None,
        "least_active_day": by_count_asc[0][0] if by_count_asc else None,
    }
