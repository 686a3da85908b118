#!/usr/bin/env python3
"""
Run one waitlist expiry sweep outside the API process (cron, or when WAITLIST_SWEEP_ENABLED=false).

  cd backend && python scripts/run_expiry_sweep.py             # every room with calledin/notified entries
  cd backend && python scripts/run_expiry_sweep.py --room ROOM # one room
"""
import argparse
import logging
import os
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from dotenv import load_dotenv

load_dotenv(backend_dir / ".env")

from app.scheduler.waitlist_expiry_job import run_waitlist_expiry_job


def main() -> int:
    parser = argparse.ArgumentParser(description="Expire overdue waitlist entries and send expiry warnings.")
    parser.add_argument("--room", dest="room_id", default=None, help="Room id (default: all rooms)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    expired = run_waitlist_expiry_job(room_id=args.room_id)
    total = sum(len(ids) for ids in expired.values())
    for room_id, ids in expired.items():
        print(f"{room_id}: expired {len(ids)} entries")
    print(f"Done. {total} entries expired.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
