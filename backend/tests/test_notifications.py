import json

import httpx
import pytest

from app.core.status import WaitlistStatus
from app.models.player_notification import PlayerNotification
from app.models.push_token import PushToken
from app.services import push as push_module
from app.services.push import send_push_to_devices
from app.services.waitlist import PlayerNotificationService, notify_safely
from tests.conftest import make_entry


class FakePush:
    def __init__(self):
        self.calls = []
        self.extras = []

    def __call__(self, tokens, title, body, data=None, urgent=False):
        self.calls.append((list(tokens), title, body))
        self.extras.append((data, urgent))
        return len(tokens)


@pytest.fixture
def push():
    return FakePush()


@pytest.fixture
def service(session_factory, push):
    return PlayerNotificationService(session_factory, push_sender=push)


@pytest.fixture
def registered_device(db, player):
    db.add(PushToken(player_id=player.id, device_token="abc123"))
    db.commit()
    return "abc123"


def _notifications(db):
    db.expire_all()
    return db.query(PlayerNotification).order_by(PlayerNotification.id).all()


def test_notified_is_urgent_and_pushed(db, service, push, room, game, player, registered_device):
    entry = make_entry(db, room, game, player, status=WaitlistStatus.NOTIFIED)

    service.notify_status_change(entry.id, WaitlistStatus.NOTIFIED, WaitlistStatus.WAITING)

    [row] = _notifications(db)
    assert row.player_id == player.id
    assert row.type == "status_change"
    assert row.priority == "urgent"
    assert row.message == "A seat is available for 1/2 NLH! You have 5 minutes to respond."
    assert row.payload["status"] == "notified"
    assert row.payload["previous_status"] == "waiting"
    assert push.calls == [(["abc123"], "Waitlist Update", row.message)]
    data, urgent = push.extras[0]
    assert urgent is True
    assert data["type"] == "status_change"
    assert data["entry_id"] == entry.id
    assert data["status"] == "notified"


@pytest.mark.parametrize(
    "status,priority,pushed",
    [
        (WaitlistStatus.WAITING, "medium", False),
        (WaitlistStatus.SEATED, "high", True),
        (WaitlistStatus.CANCELLED, "medium", False),
        (WaitlistStatus.EXPIRED, "medium", False),
    ],
)
def test_status_priorities(db, service, push, room, game, player, registered_device, status, priority, pushed):
    entry = make_entry(db, room, game, player, status=status)

    service.notify_status_change(entry.id, status, None)

    [row] = _notifications(db)
    assert row.priority == priority
    assert bool(push.calls) is pushed


def test_expired_message_wording(db, service, room, game, player):
    entry = make_entry(db, room, game, player, status=WaitlistStatus.EXPIRED)

    service.notify_status_change(entry.id, "expired", "calledin")

    [row] = _notifications(db)
    assert row.message == "Your waitlist entry for 1/2 NLH has expired due to timeout."


def test_expiry_warning(db, service, push, room, game, player, registered_device):
    entry = make_entry(db, room, game, player)

    service.notify_expiry_warning(entry.id, 8)

    [row] = _notifications(db)
    assert row.type == "expiry_warning"
    assert row.priority == "high"
    assert "will expire in 8 minutes" in row.message
    assert row.payload["minutes_remaining"] == 8
    assert len(push.calls) == 1


def test_position_change_is_low_priority_and_not_pushed(db, service, push, room, game, player, registered_device):
    entry = make_entry(db, room, game, player, status=WaitlistStatus.WAITING, position=2)

    service.notify_position_change(entry.id, 2, 4)

    [row] = _notifications(db)
    assert row.priority == "low"
    assert row.message == "You moved up to position 2 for 1/2 NLH."
    assert push.calls == []


def test_missing_entry_is_skipped(db, service):
    service.notify_status_change("missing", WaitlistStatus.WAITING, None)

    assert _notifications(db) == []


def test_notify_safely_swallows_errors():
    def boom(*args):
        raise RuntimeError("down")

    notify_safely(boom, "entry", 1)


def test_push_is_skipped_when_apns_not_configured(monkeypatch):
    for var in ("APNS_BUNDLE_ID", "APNS_KEY_ID", "APNS_TEAM_ID", "APNS_KEY_P8_PATH", "APNS_KEY_P8_BASE64"):
        monkeypatch.delenv(var, raising=False)

    assert send_push_to_devices(["abc123"], "Waitlist Update", "hello") == 0
    assert send_push_to_devices([], "Waitlist Update", "hello") == 0


def test_apns_alert_carries_waitlist_block(monkeypatch):
    sent = []
    real_client = httpx.Client

    def handler(request):
        sent.append((request.url.path, request.headers["apns-topic"], json.loads(request.content)))
        return httpx.Response(200)

    monkeypatch.setenv("APNS_BUNDLE_ID", "com.example.pokerroom")
    monkeypatch.setattr(push_module, "_get_apns_jwt", lambda: "provider-token")
    monkeypatch.setattr(push_module.httpx, "Client", lambda **kw: real_client(transport=httpx.MockTransport(handler)))

    ok = push_module.send_apns(
        "abc123",
        "Waitlist Update",
        "A seat is available",
        data={"type": "status_change", "entry_id": "e-1", "status": "notified"},
        urgent=True,
    )

    assert ok is True
    path, topic, payload = sent[0]
    assert path == "/3/device/abc123"
    assert topic == "com.example.pokerroom"
    assert payload["aps"]["alert"] == {"title": "Waitlist Update", "body": "A seat is available"}
    assert payload["aps"]["interruption-level"] == "time-sensitive"
    assert payload["aps"]["thread-id"] == "waitlist-e-1"
    assert payload["waitlist"]["status"] == "notified"
