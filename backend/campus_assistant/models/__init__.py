"""Data models"""
from .user import User, UserState
from .conversation import ConversationEntry, Direction
from .feedback import FeedbackRecord
from .location import Location

__all__ = [
    "User",
    "UserState",
    "ConversationEntry",
    "Direction",
    "FeedbackRecord",
    "Location",
]
