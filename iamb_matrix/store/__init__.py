"""
In-memory client state.

Rooms, their time-ordered message indices, and the user directory, all
mutated incrementally as sync batches arrive.
"""

from .message import Message
from .room import Room, RoomUpdate
from .timeline import MessageIndex
from .users import User, UserDirectory

__all__ = [
    "Message",
    "MessageIndex",
    "Room",
    "RoomUpdate",
    "User",
    "UserDirectory",
]
