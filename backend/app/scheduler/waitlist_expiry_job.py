"""
Waitlist expiry job: every WAITLIST_SWEEP_INTERVAL_SECONDS, expire overdue calledin/notified
entries and send expiry warnings for entries about to run out.

Runs for one room or, by default, every room that currently has calledin/notified entries.
Never raises into the scheduler; failures are logged and retried on the next tick.
"""
import logging

from app.core.constants import WAITLIST_EXPIRY_JOB_ID, WAITLIST_EXPIRY_ROOM_JOB_PREFIX, WAITLIST_SWEEP_INTERVAL_SECONDS
from app.db.session import SessionLocal
from app.services.waitlist import (
    ExpirySweeper,
    PlayerNotificationService,
    SqlWaitlistStore,
    WaitlistStatusManager,
)

logger = logging.getLogger(__name__)


def _job_id(room_id: str | None) -> str:
    return f"{WAITLIST_EXPIRY_ROOM_JOB_PREFIX}{room_id}" if room_id else WAITLIST_EXPIRY_JOB_ID


def run_waitlist_expiry_job(room_id: str | None = None, session_factory=SessionLocal, notifier=None) -> dict[str, list[str]]:
    """One sweep. Returns {room_id: [expired entry ids]} for rooms where something expired."""
    db = session_factory()
    expired: dict[str, list[str]] = {}
    try:
        store = SqlWaitlistStore(db)
        notifier = notifier or PlayerNotificationService(session_factory)
        sweeper = ExpirySweeper(store, notifier)
        manager = WaitlistStatusManager(store, notifier)
        room_ids = [room_id] if room_id else store.list_room_ids_with_expiring_entries()
        warned = 0
        for rid in room_ids:
            ids = sweeper.check_and_expire_entries(rid)
            if ids:
                expired[rid] = ids
            warned += manager.process_expiry_warnings(rid)
        if expired or warned:
            logger.info(
                "Waitlist expiry job: expired %s entries in %s rooms, sent %s warnings",
                sum(len(v) for v in expired.values()),
                len(expired),
                warned,
            )
    except Exception as e:
        logger.exception("Waitlist expiry job failed: %s", e)
        db.rollback()
    finally:
        db.close()
    return expired


def start_waitlist_expiry_job(scheduler, interval_seconds: int | None = None, room_id: str | None = None) -> str:
    """Add (or replace) the interval job on an APScheduler scheduler. Returns the job id."""
    job_id = _job_id(room_id)
    seconds = interval_seconds or WAITLIST_SWEEP_INTERVAL_SECONDS
    scheduler.add_job(
        run_waitlist_expiry_job,
        "interval",
        seconds=seconds,
        id=job_id,
        kwargs={"room_id": room_id},
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info("Waitlist expiry job %s scheduled every %ss", job_id, seconds)
    return job_id


def stop_waitlist_expiry_job(scheduler, room_id: str | None = None) -> bool:
    job_id = _job_id(room_id)
    if scheduler.get_job(job_id) is None:
        return False
    scheduler.remove_job(job_id)
    logger.info("Waitlist expiry job %s stopped", job_id)
    return True
