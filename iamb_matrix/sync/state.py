"""
Sync engine states and their legal transitions.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class ClientState(Enum):
    """States of the client's authentication and sync cycle."""

    AUTHENTICATING = "authenticating"
    AUTHENTICATING_TOKEN = "authenticating.token"
    AUTHENTICATING_PASSWORD = "authenticating.password"
    SYNC = "sync"
    SYNC_WAIT = "sync.wait"
    SYNC_FAILED = "sync.failed"
    FAILED = "failed"


TRANSITIONS: dict[ClientState, frozenset[ClientState]] = {
    ClientState.AUTHENTICATING: frozenset(
        {ClientState.AUTHENTICATING_TOKEN, ClientState.AUTHENTICATING_PASSWORD}
    ),
    ClientState.AUTHENTICATING_TOKEN: frozenset({ClientState.SYNC, ClientState.FAILED}),
    ClientState.AUTHENTICATING_PASSWORD: frozenset({ClientState.SYNC, ClientState.FAILED}),
    # Back to authenticating when the homeserver drops our session
    ClientState.SYNC: frozenset(
        {ClientState.SYNC_WAIT, ClientState.SYNC_FAILED, ClientState.AUTHENTICATING}
    ),
    ClientState.SYNC_WAIT: frozenset({ClientState.SYNC}),
    ClientState.SYNC_FAILED: frozenset({ClientState.SYNC}),
    ClientState.FAILED: frozenset(),
}


class StateMachine:
    """Current state plus transition validation."""

    def __init__(self, initial: ClientState = ClientState.AUTHENTICATING):
        self._state = initial

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self._state]

    def can_transition(self, target: ClientState) -> bool:
        return target in TRANSITIONS[self._state]

    def transition(self, target: ClientState) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: If the current state does not allow it
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self._state.value, target.value)
        logger.debug(f"State {self._state.value} -> {target.value}")
        self._state = target
