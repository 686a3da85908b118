from app.models.game import Game
from app.models.player import Player
from app.models.player_notification import PlayerNotification
from app.models.player_session import PlayerSession
from app.models.poker_table import PokerTable
from app.models.push_token import PushToken
from app.models.room import Room
from app.models.room_operator import Operator
from app.models.table_session import TableSession
from app.models.waitlist_entry import WaitlistEntry

__all__ = [
    "Game",
    "Operator",
    "Player",
    "PlayerNotification",
    "PlayerSession",
    "PokerTable",
    "PushToken",
    "Room",
    "TableSession",
    "WaitlistEntry",
]
