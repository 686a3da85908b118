"""
FastAPI app entrypoint.

Poker room waitlist: players join/cancel/check status, operators run the queue and seat players.
The expiry sweep runs in-process on a BackgroundScheduler.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.routes import notifications, push, tables, waitlist
from app.config import settings
from app.core.errors import register_error_handlers
from app.scheduler.waitlist_expiry_job import start_waitlist_expiry_job

logger = logging.getLogger(__name__)

# Scheduler: waitlist expiry sweep every WAITLIST_SWEEP_INTERVAL_SECONDS
_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.waitlist_sweep_enabled:
        start_waitlist_expiry_job(_scheduler)
        _scheduler.start()
    else:
        logger.info("Waitlist expiry sweep disabled (WAITLIST_SWEEP_ENABLED=false)")
    app.state.scheduler = _scheduler
    print("\n" + "=" * 60)
    print("  BACKEND READY  http://127.0.0.1:8000")
    print("  API docs       http://127.0.0.1:8000/docs")
    print("  Health         http://127.0.0.1:8000/health")
    print("=" * 60 + "\n")
    logger.info("Backend ready at http://127.0.0.1:8000")
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Poker Room Waitlist", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the deployed frontends
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(waitlist.router, prefix="/rooms/{room_id}/waitlist", tags=["waitlist"])
app.include_router(tables.router, prefix="/rooms/{room_id}/tables", tags=["tables"])
app.include_router(notifications.router, prefix="/players/me", tags=["notifications"])
app.include_router(push.router, prefix="/players/me", tags=["push"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Poker Room Waitlist API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
