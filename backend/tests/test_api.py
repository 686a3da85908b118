from datetime import timedelta

import pytest

from app.core.status import WaitlistStatus
from app.models.player_notification import PlayerNotification
from app.models.push_token import PushToken
from app.models.waitlist_entry import WaitlistEntry
from tests.conftest import NOW, bearer, make_entry, make_game, make_operator, make_player, make_room, make_table

OPERATOR = "op-auth"
PLAYER = "player-auth"


@pytest.fixture
def operator(db, room):
    return make_operator(db, room, auth_id=OPERATOR)


@pytest.fixture
def staff():
    return bearer(OPERATOR)


@pytest.fixture
def me():
    return bearer(PLAYER)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# --- Auth ---


def test_missing_or_bad_token_is_401(client, room):
    resp = client.get(f"/rooms/{room.id}/waitlist/status")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Unauthorized"}

    resp = client.get(f"/rooms/{room.id}/waitlist/status", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_unknown_player_is_404(client, room):
    resp = client.get(f"/rooms/{room.id}/waitlist/status", headers=bearer("nobody"))
    assert resp.status_code == 404
    assert resp.json()["error"] == "Player profile not found"


def test_operator_routes_require_operator_for_room(client, room, game, me):
    resp = client.get(f"/rooms/{room.id}/waitlist/games/{game.id}/queue", headers=me)
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "error": "Access denied"}


# --- Player flow ---


def test_join_then_status_then_cancel(client, db, room, game, player, me):
    resp = client.post(f"/rooms/{room.id}/waitlist/join", json={"game_ids": [game.id], "notes": "window seat"}, headers=me)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Successfully joined waitlist for 1 game(s)"
    entry = body["entries"][0]
    assert entry["status"] == "calledin"
    assert entry["game"]["name"] == "1/2 NLH"

    status = client.get(f"/rooms/{room.id}/waitlist/status", headers=me).json()
    assert [e["id"] for e in status["entries"]] == [entry["id"]]
    assert status["entries"][0]["minutes_remaining"] == 90

    resp = client.post(f"/rooms/{room.id}/waitlist/cancel", json={"entry_id": entry["id"]}, headers=me)
    assert resp.status_code == 200
    assert resp.json()["entry"]["cancelled_by"] == "player"

    assert client.get(f"/rooms/{room.id}/waitlist/status", headers=me).json()["entries"] == []


def test_join_validation_errors(client, db, room, game, player, me):
    closed = make_game(db, room, "10/20 Mix", is_active=False)

    resp = client.post(f"/rooms/{room.id}/waitlist/join", json={"game_ids": []}, headers=me)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request data"

    resp = client.post(f"/rooms/{room.id}/waitlist/join", json={"game_ids": [game.id, closed.id]}, headers=me)
    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "error": "One or more games are inactive",
        "inactive_games": ["10/20 Mix"],
    }

    resp = client.post(f"/rooms/{room.id}/waitlist/join", json={"game_ids": ["nope"]}, headers=me)
    assert resp.status_code == 404


# --- Operator flow ---


def test_status_transitions_over_http(client, db, room, game, player, operator, staff, notifier):
    entry = make_entry(db, room, game, player)
    url = f"/rooms/{room.id}/waitlist/{entry.id}/status"

    resp = client.post(url, json={"status": "waiting"}, headers=staff)
    assert resp.status_code == 200
    assert resp.json()["entry"]["status"] == "waiting"
    assert resp.json()["entry"]["position"] == 1

    resp = client.post(url, json={"status": "seated"}, headers=staff)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid status transition from waiting to seated"

    resp = client.post(url, json={"status": "bogus"}, headers=staff)
    assert resp.status_code == 400

    info = client.get(url, headers=staff).json()
    assert info["config"]["label"] == "Waiting"
    assert info["deadline"] is None
    assert notifier.status_changes[0][1] == WaitlistStatus.WAITING


def test_unknown_entry_is_404(client, room, operator, staff):
    resp = client.post(f"/rooms/{room.id}/waitlist/missing/status", json={"status": "waiting"}, headers=staff)
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_open_table_and_seat(client, db, room, game, player, operator, staff):
    table = make_table(db, room, game, seat_count=2)
    entry = make_entry(db, room, game, player, status=WaitlistStatus.NOTIFIED, notified_at=NOW)
    other_game = make_game(db, room, "2/5 PLO")
    sibling = make_entry(db, room, other_game, player)

    resp = client.post(f"/rooms/{room.id}/tables/{table.id}/open", json={}, headers=staff)
    assert resp.status_code == 200
    assert client.post(f"/rooms/{room.id}/tables/{table.id}/open", json={}, headers=staff).status_code == 400

    resp = client.post(
        f"/rooms/{room.id}/waitlist/{entry.id}/seat", json={"table_id": table.id, "seat_number": 2}, headers=staff
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["cancelled_entry_ids"] == [sibling.id]
    assert "warning" not in body

    seats = client.get(f"/rooms/{room.id}/tables/{table.id}/seats", headers=staff).json()
    assert seats["available_seats"] == [1]
    occupancy = client.get(f"/rooms/{room.id}/tables/{table.id}/occupancy", headers=staff).json()
    assert occupancy["occupied_seats"] == 1

    resp = client.post(
        f"/rooms/{room.id}/tables/player-sessions/{body['player_session_id']}/end", json={}, headers=staff
    )
    assert resp.status_code == 200
    assert client.get(f"/rooms/{room.id}/tables/{table.id}/seats", headers=staff).json()["available_seats"] == [1, 2]

    assert client.post(f"/rooms/{room.id}/tables/{table.id}/close", headers=staff).status_code == 200


def test_end_seat_cannot_requeue_into_other_room(client, db, room, game, player, operator, staff):
    table = make_table(db, room, game)
    entry = make_entry(db, room, game, player, status=WaitlistStatus.NOTIFIED, notified_at=NOW)
    foreign_game = make_game(db, make_room(db, "Aria"), "1/3 NLH")
    client.post(f"/rooms/{room.id}/tables/{table.id}/open", json={}, headers=staff)
    seat = client.post(
        f"/rooms/{room.id}/waitlist/{entry.id}/seat", json={"table_id": table.id, "seat_number": 1}, headers=staff
    ).json()

    resp = client.post(
        f"/rooms/{room.id}/tables/player-sessions/{seat['player_session_id']}/end",
        json={"add_to_waitlist": True, "game_id": foreign_game.id},
        headers=staff,
    )

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Game not found"}
    assert db.query(WaitlistEntry).filter(WaitlistEntry.game_id == foreign_game.id).count() == 0


def test_seat_on_closed_table_is_400(client, db, room, game, player, operator, staff):
    table = make_table(db, room, game)
    entry = make_entry(db, room, game, player, status=WaitlistStatus.NOTIFIED, notified_at=NOW)

    resp = client.post(
        f"/rooms/{room.id}/waitlist/{entry.id}/seat", json={"table_id": table.id, "seat_number": 1}, headers=staff
    )
    assert resp.status_code == 400


def test_auto_assign(client, db, room, game, operator, staff):
    table = make_table(db, room, game)
    client.post(f"/rooms/{room.id}/tables/{table.id}/open", json={}, headers=staff)
    make_entry(db, room, game, make_player(db, "Head"), status=WaitlistStatus.WAITING, position=1)

    resp = client.post(f"/rooms/{room.id}/waitlist/auto-assign", json={"game_id": game.id}, headers=staff)

    assert resp.status_code == 200
    assert resp.json()["message"] == "Successfully assigned Head to a table"


def test_queue_reordering(client, db, room, game, operator, staff):
    a = make_entry(db, room, game, make_player(db, "a"), status=WaitlistStatus.WAITING, position=1)
    b = make_entry(db, room, game, make_player(db, "b"), status=WaitlistStatus.WAITING, position=2)
    c = make_entry(db, room, game, make_player(db, "c"), status=WaitlistStatus.WAITING, position=3)
    base = f"/rooms/{room.id}/waitlist"

    resp = client.post(f"{base}/{c.id}/move-up", headers=staff)
    assert resp.json() == {"success": True, "moved": True, "entry_id": c.id, "position": 2}

    assert client.post(f"{base}/{a.id}/move-up", headers=staff).json()["moved"] is False
    client.post(f"{base}/{a.id}/move-to-bottom", headers=staff)
    client.post(f"{base}/{b.id}/move", json={"before_entry_id": c.id}, headers=staff)

    queue = client.get(f"{base}/games/{game.id}/queue", headers=staff).json()["entries"]
    assert [e["id"] for e in queue] == [b.id, c.id, a.id]
    assert [e["queue_position"] for e in queue] == [1, 2, 3]
    assert queue[2]["estimated_wait_minutes"] == 30

    pos = client.get(f"{base}/{a.id}/position", headers=staff).json()
    assert pos["position"] == 3
    assert pos["can_move_down"] is False

    resp = client.post(f"{base}/{b.id}/move", json={"position": 2, "after_entry_id": c.id}, headers=staff)
    assert resp.status_code == 400


def test_reordering_non_waiting_entry_is_400(client, db, room, game, player, operator, staff):
    entry = make_entry(db, room, game, player)
    resp = client.post(f"/rooms/{room.id}/waitlist/{entry.id}/move-up", headers=staff)
    assert resp.status_code == 400


def test_expiry_process_and_history(client, db, room, game, player, operator, staff):
    stale = make_entry(db, room, game, player, created_at=NOW - timedelta(minutes=91))
    make_entry(db, room, game, player, created_at=NOW - timedelta(minutes=89))

    resp = client.post(f"/rooms/{room.id}/waitlist/expiry/process", headers=staff)
    assert resp.status_code == 200
    assert resp.json()["expired_entry_ids"] == [stale.id]

    history = client.get(f"/rooms/{room.id}/waitlist/expired", headers=staff).json()["entries"]
    assert [e["id"] for e in history] == [stale.id]
    assert history[0]["cancelled_by"] == "system"

    db.expire_all()
    assert db.get(WaitlistEntry, stale.id).status == WaitlistStatus.EXPIRED


def test_analytics_endpoint(client, db, room, game, player, operator, staff):
    make_entry(db, room, game, player, created_at=NOW - timedelta(hours=1))

    resp = client.get(f"/rooms/{room.id}/waitlist/analytics", params={"time_range": "24h"}, headers=staff)
    assert resp.status_code == 200
    assert resp.json()["analytics"]["total_entries"] == 1

    resp = client.get(f"/rooms/{room.id}/waitlist/analytics", params={"time_range": "1y"}, headers=staff)
    assert resp.status_code == 400


# --- Player notifications and push ---


def test_notifications_list_and_read(client, db, player, me):
    db.add_all(
        [
            PlayerNotification(player_id=player.id, title="Waitlist Update", message="one", payload={}),
            PlayerNotification(player_id=player.id, title="Waitlist Update", message="two", payload={}),
        ]
    )
    other = make_player(db, "other")
    db.add(PlayerNotification(player_id=other.id, title="Waitlist Update", message="not mine", payload={}))
    db.commit()

    listing = client.get("/players/me/notifications", headers=me).json()
    assert listing["unread_count"] == 2
    assert {n["message"] for n in listing["notifications"]} == {"one", "two"}

    first_id = listing["notifications"][0]["id"]
    resp = client.patch(f"/players/me/notifications/{first_id}/read", headers=me)
    assert resp.status_code == 200
    assert client.get("/players/me/notifications", params={"unread_only": True}, headers=me).json()["unread_count"] == 1

    assert client.post("/players/me/notifications/mark-all-read", headers=me).json()["marked_count"] == 1
    assert client.patch("/players/me/notifications/999999/read", headers=me).status_code == 404


def test_push_register_is_idempotent(client, db, player, me):
    body = {"device_token": "deadbeef", "platform": "ios"}

    assert client.post("/players/me/push/register", json=body, headers=me).json()["message"] == "Token registered"
    assert client.post("/players/me/push/register", json=body, headers=me).json()["message"] == "Token already registered"
    assert db.query(PushToken).filter(PushToken.player_id == player.id).count() == 1
