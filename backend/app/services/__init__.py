from app.services.table_seating_service import TableSeatingService
from app.services.waitlist_service import (
    cancel_player_entry,
    get_player_status,
    get_waitlist_analytics,
    join_waitlist,
    serialize_entry,
)

__all__ = [
    "TableSeatingService",
    "cancel_player_entry",
    "get_player_status",
    "get_waitlist_analytics",
    "join_waitlist",
    "serialize_entry",
]
