"""
Authentication and sync state machine.
"""

from .engine import Identity, MatrixClient
from .state import TRANSITIONS, ClientState, StateMachine

__all__ = [
    "MatrixClient",
    "Identity",
    "ClientState",
    "StateMachine",
    "TRANSITIONS",
]
