"""
iamb Matrix client

Sync engine and in-memory state store for a Matrix chat client.

Provides:
- Password or token authentication against a homeserver
- A long-poll /sync loop with fixed-interval retries
- Rooms, a time-ordered message index per room, and a user directory
- ``connected`` / ``room`` / ``message`` / ``error`` notifications

Usage:

    >>> from iamb_matrix import AccountConfig, MatrixClient
    >>> client = MatrixClient(
    ...     AccountConfig(url="https://matrix.example.com", username="alice", password="...")
    ... )
    >>> client.on("room", lambda room: print("joined", room.display_name))
    >>> client.on("message", lambda msg: print(msg.speaker.display_name, msg.text))
    >>> await client.run()
"""

from .config import AccountConfig, ClientConfig, load_config
from .events import AccountDataType, ClientEventType, EphemeralEventType, RoomEventType
from .exceptions import (
    AuthenticationError,
    ConfigValidationError,
    InvalidTransitionError,
    MalformedEventError,
    MatrixClientError,
    MatrixClientFailure,
    ReauthenticationRequiredError,
    SyncError,
    TransportError,
)
from .store import Message, MessageIndex, Room, RoomUpdate, User, UserDirectory
from .sync import ClientState, Identity, MatrixClient
from .transport import HttpTransport, MatrixTransport

__all__ = [
    # Client
    "MatrixClient",
    "ClientState",
    "Identity",
    # Configuration
    "AccountConfig",
    "ClientConfig",
    "load_config",
    # State store
    "Room",
    "RoomUpdate",
    "Message",
    "MessageIndex",
    "User",
    "UserDirectory",
    # Event kinds
    "ClientEventType",
    "RoomEventType",
    "EphemeralEventType",
    "AccountDataType",
    # Transports
    "MatrixTransport",
    "HttpTransport",
    # Exceptions
    "MatrixClientError",
    "ConfigValidationError",
    "TransportError",
    "ReauthenticationRequiredError",
    "AuthenticationError",
    "SyncError",
    "MalformedEventError",
    "InvalidTransitionError",
    "MatrixClientFailure",
]

__version__ = "0.1.0"
