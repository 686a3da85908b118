"""
Waitlist status machine: closed status enum, transition table and per-status display config.

calledin -> waiting -> notified -> seated, with cancelled/expired reachable from any
non-terminal status. Nothing transitions into calledin; it is only the creation status.
"""
from dataclasses import dataclass, field
from enum import Enum


class WaitlistStatus(str, Enum):
    CALLEDIN = "calledin"
    WAITING = "waiting"
    NOTIFIED = "notified"
    SEATED = "seated"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class CancelledBy(str, Enum):
    PLAYER = "player"
    STAFF = "staff"
    SYSTEM = "system"


TERMINAL_STATUSES = frozenset({WaitlistStatus.SEATED, WaitlistStatus.CANCELLED, WaitlistStatus.EXPIRED})
ACTIVE_STATUSES = frozenset({WaitlistStatus.CALLEDIN, WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED})
# Statuses that carry a deadline and are scanned by the expiry sweeper
EXPIRING_STATUSES = frozenset({WaitlistStatus.CALLEDIN, WaitlistStatus.NOTIFIED})

ALLOWED_TRANSITIONS: dict[WaitlistStatus, frozenset[WaitlistStatus]] = {
    WaitlistStatus.CALLEDIN: frozenset(
        {WaitlistStatus.WAITING, WaitlistStatus.CANCELLED, WaitlistStatus.EXPIRED}
    ),
    WaitlistStatus.WAITING: frozenset(
        {WaitlistStatus.NOTIFIED, WaitlistStatus.CANCELLED, WaitlistStatus.EXPIRED}
    ),
    WaitlistStatus.NOTIFIED: frozenset(
        {WaitlistStatus.SEATED, WaitlistStatus.CANCELLED, WaitlistStatus.EXPIRED}
    ),
    WaitlistStatus.SEATED: frozenset(),
    WaitlistStatus.CANCELLED: frozenset(),
    WaitlistStatus.EXPIRED: frozenset(),
}

# Every enum member must have a row
if set(ALLOWED_TRANSITIONS) != set(WaitlistStatus):
    raise RuntimeError("Waitlist transition table must cover every status")


def is_valid_transition(current: WaitlistStatus | str | None, requested: WaitlistStatus | str) -> bool:
    """True if `requested` may follow `current`. Unknown or missing statuses are never valid."""
    if current is None:
        return False
    try:
        current = WaitlistStatus(current)
        requested = WaitlistStatus(requested)
    except ValueError:
        return False
    return requested in ALLOWED_TRANSITIONS[current]


def is_terminal(status: WaitlistStatus | str | None) -> bool:
    return status is not None and WaitlistStatus(status) in TERMINAL_STATUSES


@dataclass(frozen=True)
class StatusConfig:
    label: str
    description: str
    show_countdown: bool = False
    countdown_minutes: int | None = None
    actions: tuple[str, ...] = field(default_factory=tuple)


STATUS_CONFIG: dict[WaitlistStatus, StatusConfig] = {
    WaitlistStatus.WAITING: StatusConfig(
        label="Waiting",
        description="Player is checked in and waiting for a seat",
        actions=("notify", "cancel"),
    ),
    WaitlistStatus.CALLEDIN: StatusConfig(
        label="Called In",
        description="Player has 90 minutes to check in",
        show_countdown=True,
        countdown_minutes=90,
        actions=("checkin", "cancel"),
    ),
    WaitlistStatus.NOTIFIED: StatusConfig(
        label="Notified",
        description="Player has 5 minutes to respond",
        show_countdown=True,
        countdown_minutes=5,
        actions=("assign", "cancel"),
    ),
    WaitlistStatus.CANCELLED: StatusConfig(label="Cancelled", description="Entry was cancelled"),
    WaitlistStatus.SEATED: StatusConfig(label="Seated", description="Player is seated at a table"),
    WaitlistStatus.EXPIRED: StatusConfig(label="Expired", description="Time limit exceeded"),
}


def status_config(status: WaitlistStatus | str | None) -> StatusConfig:
    """Display config for a status; a missing status is shown as calledin."""
    return STATUS_CONFIG[WaitlistStatus(status or WaitlistStatus.CALLEDIN)]
