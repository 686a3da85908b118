"""
Centralized constants for the scheduler and waitlist API (Encapsulate What Changes).

Change job IDs or caps here instead of scattering literals across main, jobs and routes.
Timeouts and intervals come from settings (env-driven).
"""
from app.config import settings

# Scheduler job IDs (must match ids used by start_waitlist_expiry_job)
WAITLIST_EXPIRY_JOB_ID = "waitlist_expiry"
WAITLIST_EXPIRY_ROOM_JOB_PREFIX = "waitlist_expiry:"

WAITLIST_SWEEP_INTERVAL_SECONDS = settings.waitlist_sweep_interval_seconds

# Analytics time ranges -> days back
ANALYTICS_TIME_RANGES = {"24h": 1, "7d": 7, "30d": 30}
ANALYTICS_PEAK_HOURS = 3
ANALYTICS_TOP_GAMES = 5

# Scalability: hard caps so DB and response size stay bounded
NOTIFICATIONS_LIST_LIMIT = 200
ANALYTICS_ENTRY_LIMIT = 20000
