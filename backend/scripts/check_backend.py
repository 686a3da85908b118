#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from repo root or backend/:
  python backend/scripts/check_backend.py
  # or:
  cd backend && python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Copy from backend/.env.example and set DATABASE_URL, JWT_SECRET.")
    else:
        print("OK  .env exists")

    # 2) Settings that must not keep their defaults in a real deployment
    from app.config import settings

    if settings.jwt_secret == "change-me":
        print("WARN JWT_SECRET is the default; bearer tokens are not secure")

    # 3) DB connection and schema
    try:
        from sqlalchemy import inspect, text
        from app.db.session import engine
        from app.db.tables import ALL_TABLE_NAMES

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = sorted(set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names()))
        if missing:
            errors.append(f"Missing tables {missing}. Run: cd backend && alembic upgrade head")
            print("FAIL Schema: missing", ", ".join(missing))
        else:
            print("OK  Schema has all waitlist tables")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 4) App import (catches missing deps, bad imports)
    try:
        from app.main import app  # noqa: F401
        print("OK  App import (app.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)
        print("\nFix the above, then run:")
        print("  cd backend && uvicorn app.main:app --reload --host 0.0.0.0 --port 8000")
        return 1

    # 5) APNs is optional
    from app.services.push import apns_configured

    print("OK  APNs configured" if apns_configured() else "INFO APNs not configured; pushes are skipped")

    # 6) Port 8000
    try:
        import socket
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 8000))
        print("OK  Port 8000 is free")
    except OSError:
        errors.append("Port 8000 is in use. Stop the other process or use another port (e.g. --port 8001).")
        print("FAIL Port 8000 is in use")

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        return 1

    print("\nAll checks passed. Start with: cd backend && uvicorn app.main:app --reload")
    return 0


if __name__ == "__main__":
    sys.exit(main())
