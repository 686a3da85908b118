"""
Single source of truth for database tables created by migration 001.

Use these names when writing raw SQL. alembic/env.py asserts the registered models match.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "rooms",
    "games",
    "tables",
    "players",
    "operators",
    "table_sessions",
    "player_sessions",
    "waitlist_entries",
    "player_notifications",
    "push_tokens",
)
