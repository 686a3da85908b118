"""Rooms, games, tables, sessions, players, operators, waitlist entries, player notifications, push tokens."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WAITLIST_STATUSES = ("calledin", "waiting", "notified", "seated", "cancelled", "expired")
CANCELLED_BY = ("player", "staff", "system")


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "rooms",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_table(
        "games",
        _id(),
        sa.Column("room_id", sa.String(36), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("game_type", sa.String(32), nullable=False, server_default="texas_holdem"),
        sa.Column("small_blind", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("big_blind", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("ix_games_room_id", "games", ["room_id"])

    op.create_table(
        "tables",
        _id(),
        sa.Column("room_id", sa.String(36), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("game_id", sa.String(36), sa.ForeignKey("games.id"), nullable=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("seat_count", sa.Integer(), nullable=False, server_default="9"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("ix_tables_room_id", "tables", ["room_id"])
    op.create_index("ix_tables_game_id", "tables", ["game_id"])

    op.create_table(
        "players",
        _id(),
        sa.Column("auth_id", sa.String(64), nullable=True),
        sa.Column("alias", sa.String(64), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        _created_at(),
    )
    op.create_index("ix_players_auth_id", "players", ["auth_id"], unique=True)

    op.create_table(
        "operators",
        _id(),
        sa.Column("auth_id", sa.String(64), nullable=False),
        sa.Column("room_id", sa.String(36), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="dealer"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("ix_operators_auth_id", "operators", ["auth_id"])
    op.create_index("ix_operators_room_id", "operators", ["room_id"])

    op.create_table(
        "table_sessions",
        _id(),
        sa.Column("table_id", sa.String(36), sa.ForeignKey("tables.id"), nullable=False),
        sa.Column("game_id", sa.String(36), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("room_id", sa.String(36), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_table_sessions_table_id", "table_sessions", ["table_id"])
    op.create_index("ix_table_sessions_game_id", "table_sessions", ["game_id"])
    op.create_index("ix_table_sessions_room_id", "table_sessions", ["room_id"])

    op.create_table(
        "player_sessions",
        _id(),
        sa.Column("table_session_id", sa.String(36), sa.ForeignKey("table_sessions.id"), nullable=False),
        sa.Column("player_id", sa.String(36), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_player_sessions_table_session_id", "player_sessions", ["table_session_id"])
    op.create_index("ix_player_sessions_player_id", "player_sessions", ["player_id"])
    # One open occupant per seat
    op.create_index(
        "uq_player_sessions_open_seat",
        "player_sessions",
        ["table_session_id", "seat_number"],
        unique=True,
        postgresql_where=sa.text("end_time IS NULL"),
        sqlite_where=sa.text("end_time IS NULL"),
    )

    op.create_table(
        "waitlist_entries",
        _id(),
        sa.Column("player_id", sa.String(36), sa.ForeignKey("players.id"), nullable=True),
        sa.Column("game_id", sa.String(36), sa.ForeignKey("games.id"), nullable=True),
        sa.Column("room_id", sa.String(36), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("status", sa.Enum(*WAITLIST_STATUSES, name="waitlist_status"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("entry_method", sa.String(16), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.Enum(*CANCELLED_BY, name="cancelled_by"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_waitlist_entries_player_id", "waitlist_entries", ["player_id"])
    op.create_index("ix_waitlist_entries_game_id", "waitlist_entries", ["game_id"])
    op.create_index("ix_waitlist_entries_room_id", "waitlist_entries", ["room_id"])
    op.create_index("ix_waitlist_entries_room_status", "waitlist_entries", ["room_id", "status"])
    op.create_index(
        "ix_waitlist_entries_game_status_position", "waitlist_entries", ["game_id", "status", "position"]
    )

    op.create_table(
        "player_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("player_id", sa.String(36), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="status_change"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
    )
    op.create_index("ix_player_notifications_player_id", "player_notifications", ["player_id"])
    op.create_index("ix_player_notifications_type", "player_notifications", ["type"])

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("player_id", sa.String(36), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("device_token", sa.String(256), nullable=False),
        sa.Column("platform", sa.String(16), nullable=False, server_default="ios"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_push_tokens_player_id", "push_tokens", ["player_id"])
    op.create_index("ix_push_tokens_device_token", "push_tokens", ["device_token"], unique=True)


def downgrade() -> None:
    op.drop_table("push_tokens")
    op.drop_table("player_notifications")
    op.drop_table("waitlist_entries")
    op.drop_table("player_sessions")
    op.drop_table("table_sessions")
    op.drop_table("operators")
    op.drop_table("players")
    op.drop_table("tables")
    op.drop_table("games")
    op.drop_table("rooms")
    sa.Enum(name="cancelled_by").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="waitlist_status").drop(op.get_bind(), checkfirst=True)
