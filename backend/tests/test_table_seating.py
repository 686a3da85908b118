import pytest

from app.core.errors import InactiveGames, NotFound, SeatUnavailable, TableAlreadyOpen
from app.core.status import WaitlistStatus
from app.models.player_session import PlayerSession
from app.models.table_session import TableSession
from app.models.waitlist_entry import WaitlistEntry
from app.services.table_seating_service import TableSeatingService
from app.services.waitlist import WaitlistStatusManager
from tests.conftest import NOW, make_entry, make_game, make_player, make_room, make_table, open_table_session


@pytest.fixture
def seating(store, notifier, clock):
    return TableSeatingService(store, WaitlistStatusManager(store, notifier, clock=clock))


@pytest.fixture
def table(db, room, game):
    return make_table(db, room, game, seat_count=3)


def _notified(db, room, game, alias):
    return make_entry(db, room, game, make_player(db, alias), status=WaitlistStatus.NOTIFIED, notified_at=NOW)


def test_open_table_once(db, seating, table):
    session = seating.open_table(table.id)

    assert session.end_time is None
    assert session.game_id == table.game_id
    with pytest.raises(TableAlreadyOpen):
        seating.open_table(table.id)


def test_closed_table_has_no_seats(seating, table):
    assert seating.get_available_seats(table.id) == []


def test_assign_player_takes_seat(db, seating, room, game, table):
    open_table_session(db, table)
    entry = _notified(db, room, game, "A")

    result = seating.assign_player_to_table(entry.id, table.id, 2)

    assert result.player_session.seat_number == 2
    assert seating.get_available_seats(table.id) == [1, 3]
    assert not seating.is_seat_available(table.id, 2)


def test_assign_rejects_taken_or_invalid_seat(db, seating, room, game, table):
    open_table_session(db, table)
    seating.assign_player_to_table(_notified(db, room, game, "A").id, table.id, 1)
    second = _notified(db, room, game, "B")

    with pytest.raises(SeatUnavailable):
        seating.assign_player_to_table(second.id, table.id, 1)
    with pytest.raises(SeatUnavailable):
        seating.assign_player_to_table(second.id, table.id, 4)

    db.expire_all()
    assert db.get(WaitlistEntry, second.id).status == WaitlistStatus.NOTIFIED


def test_assign_unknown_entry(db, seating, table):
    open_table_session(db, table)
    with pytest.raises(NotFound):
        seating.assign_player_to_table("missing", table.id, 1)


def test_occupancy(db, seating, room, game, table):
    open_table_session(db, table)
    entry = _notified(db, room, game, "Ace")
    seating.assign_player_to_table(entry.id, table.id, 3)

    occupancy = seating.get_table_occupancy(table.id)

    assert occupancy["total_seats"] == 3
    assert occupancy["occupied_seats"] == 1
    assert occupancy["available_seats"] == 2
    assert occupancy["players"][0]["alias"] == "Ace"
    assert occupancy["players"][0]["seat_number"] == 3


def test_remove_player_frees_seat_and_can_requeue(db, seating, clock, room, game, table):
    open_table_session(db, table)
    make_entry(db, room, game, make_player(db, "W"), status=WaitlistStatus.WAITING, position=1)
    entry = _notified(db, room, game, "A")
    result = seating.assign_player_to_table(entry.id, table.id, 1)
    clock.advance(hours=1)

    ps = seating.remove_player_from_table(result.player_session.id, add_to_waitlist=True, game_id=game.id)

    assert ps.end_time is not None
    assert seating.is_seat_available(table.id, 1)
    requeued = (
        db.query(WaitlistEntry)
        .filter(WaitlistEntry.player_id == entry.player_id, WaitlistEntry.status == WaitlistStatus.WAITING)
        .one()
    )
    assert requeued.position == 2
    assert requeued.entry_method == "inperson"
    assert requeued.room_id == room.id


def test_requeue_into_another_rooms_game_is_rejected(db, seating, room, game, table):
    open_table_session(db, table)
    other_room = make_room(db, "Aria")
    foreign_game = make_game(db, other_room, "1/3 NLH")
    result = seating.assign_player_to_table(_notified(db, room, game, "A").id, table.id, 1)

    with pytest.raises(NotFound):
        seating.remove_player_from_table(result.player_session.id, add_to_waitlist=True, game_id=foreign_game.id)

    db.expire_all()
    assert db.get(PlayerSession, result.player_session.id).end_time is None
    assert db.query(WaitlistEntry).filter(WaitlistEntry.game_id == foreign_game.id).all() == []


def test_requeue_into_inactive_game_is_rejected(db, seating, room, game, table):
    open_table_session(db, table)
    closed = make_game(db, room, "10/20 Mix", is_active=False)
    result = seating.assign_player_to_table(_notified(db, room, game, "A").id, table.id, 1)

    with pytest.raises(InactiveGames):
        seating.remove_player_from_table(result.player_session.id, add_to_waitlist=True, game_id=closed.id)

    assert seating.get_available_seats(table.id) == [2, 3]
    assert db.query(WaitlistEntry).filter(WaitlistEntry.game_id == closed.id).count() == 0


def test_close_table_ends_all_seats(db, seating, room, game, table):
    open_table_session(db, table)
    seating.assign_player_to_table(_notified(db, room, game, "A").id, table.id, 1)
    seating.assign_player_to_table(_notified(db, room, game, "B").id, table.id, 2)

    assert seating.close_table(table.id) == 2

    db.expire_all()
    assert db.query(PlayerSession).filter(PlayerSession.end_time.is_(None)).count() == 0
    assert db.query(TableSession).filter(TableSession.end_time.is_(None)).count() == 0


def test_find_next_available_seat(db, seating, room, game, table):
    assert seating.find_next_available_seat(game.id) is None
    open_table_session(db, table)

    seat = seating.find_next_available_seat(game.id)

    assert seat == {"table_id": table.id, "table_name": table.name, "seat_number": 1}


def test_auto_assign_prefers_notified_player(db, seating, room, game, table):
    open_table_session(db, table)
    make_entry(db, room, game, make_player(db, "Head"), status=WaitlistStatus.WAITING, position=1)
    notified = _notified(db, room, game, "Called")

    result, alias = seating.auto_assign_next_player(room.id, game.id)

    assert alias == "Called"
    assert result.entry_id == notified.id


def test_auto_assign_notifies_and_seats_head_of_queue(db, seating, notifier, room, game, table):
    open_table_session(db, table)
    head = make_entry(db, room, game, make_player(db, "Head"), status=WaitlistStatus.WAITING, position=1)
    make_entry(db, room, game, make_player(db, "Next"), status=WaitlistStatus.WAITING, position=2)

    result, alias = seating.auto_assign_next_player(room.id, game.id)

    assert alias == "Head"
    assert result.entry_id == head.id
    db.expire_all()
    assert db.get(WaitlistEntry, head.id).status == WaitlistStatus.SEATED
    transitions = [(e[1], e[2]) for e in notifier.status_changes if e[0] == head.id]
    assert transitions == [
        (WaitlistStatus.NOTIFIED, WaitlistStatus.WAITING),
        (WaitlistStatus.SEATED, WaitlistStatus.NOTIFIED),
    ]


def test_auto_assign_errors(db, seating, room, game, table):
    with pytest.raises(SeatUnavailable):
        seating.auto_assign_next_player(room.id, game.id)

    open_table_session(db, table)
    with pytest.raises(NotFound):
        seating.auto_assign_next_player(room.id, game.id)
