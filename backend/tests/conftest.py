# tests/conftest.py

import os
from datetime import datetime, timedelta, timezone

# Settings are read at import time; point the app at SQLite and keep the scheduler off.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["WAITLIST_SWEEP_ENABLED"] = "false"
os.environ.setdefault("JWT_SECRET", "test-secret")

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

import app.models  # noqa: F401
from app.api import deps
from app.config import settings
from app.core.status import WaitlistStatus
from app.db.base import Base
from app.db.session import get_db
from app.main import app as fastapi_app
from app.models.game import Game
from app.models.player import Player
from app.models.poker_table import PokerTable
from app.models.room import Room
from app.models.room_operator import Operator
from app.models.table_session import TableSession
from app.models.waitlist_entry import WaitlistEntry
from app.services.waitlist import SqlWaitlistStore

NOW = datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.status_changes = []
        self.expiry_warnings = []
        self.position_changes = []

    def notify_status_change(self, entry_id, new_status, old_status):
        self.status_changes.append((entry_id, WaitlistStatus(new_status), old_status))

    def notify_expiry_warning(self, entry_id, minutes_remaining):
        self.expiry_warnings.append((entry_id, minutes_remaining))

    def notify_position_change(self, entry_id, new_position, old_position):
        self.position_changes.append((entry_id, new_position, old_position))


class ExplodingNotifier:
    def notify_status_change(self, *args):
        raise RuntimeError("notifier down")

    def notify_expiry_warning(self, *args):
        raise RuntimeError("notifier down")

    def notify_position_change(self, *args):
        raise RuntimeError("notifier down")


# --- Database ---


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return SqlWaitlistStore(db)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


# --- Seed helpers ---


def make_room(db, name="Bellagio Poker Room"):
    room = Room(name=name)
    db.add(room)
    db.commit()
    return room


def make_game(db, room, name="1/2 NLH", is_active=True):
    game = Game(room_id=room.id, name=name, is_active=is_active)
    db.add(game)
    db.commit()
    return game


def make_player(db, alias="Ace", auth_id=None):
    player = Player(alias=alias, auth_id=auth_id)
    db.add(player)
    db.commit()
    return player


def make_operator(db, room, auth_id="op-auth"):
    operator = Operator(auth_id=auth_id, room_id=room.id, role="admin")
    db.add(operator)
    db.commit()
    return operator


def make_entry(
    db,
    room,
    game,
    player,
    status=WaitlistStatus.CALLEDIN,
    created_at=NOW,
    notified_at=None,
    checked_in_at=None,
    position=None,
):
    entry = WaitlistEntry(
        room_id=room.id,
        game_id=game.id,
        player_id=player.id,
        status=status,
        created_at=created_at,
        notified_at=notified_at,
        checked_in_at=checked_in_at,
        position=position,
        entry_method="callin",
    )
    db.add(entry)
    db.commit()
    return entry


def make_table(db, room, game, name="T1", seat_count=9):
    table = PokerTable(room_id=room.id, game_id=game.id, name=name, seat_count=seat_count)
    db.add(table)
    db.commit()
    return table


def open_table_session(db, table, start_time=NOW):
    session = TableSession(table_id=table.id, game_id=table.game_id, room_id=table.room_id, start_time=start_time)
    db.add(session)
    db.commit()
    return session


@pytest.fixture
def room(db):
    return make_room(db)


@pytest.fixture
def game(db, room):
    return make_game(db, room)


@pytest.fixture
def player(db):
    return make_player(db, auth_id="player-auth")


# --- API ---


def bearer(auth_id: str) -> dict[str, str]:
    token = jwt.encode({"sub": auth_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(session_factory, notifier, clock):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[deps.get_notifier] = lambda: notifier
    fastapi_app.dependency_overrides[deps.get_clock] = lambda: clock
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()
