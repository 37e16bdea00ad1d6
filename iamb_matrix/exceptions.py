"""
Custom exceptions for the Matrix client.

Transport implementations raise TransportError (or its reauthentication
subclass); the sync engine wraps those before storing them as its last error.
"""


class MatrixClientError(Exception):
    """Base exception for all Matrix client errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigValidationError(MatrixClientError):
    """Raised when account or client configuration is invalid."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid configuration for {field}: {reason}",
            {"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason


class TransportError(MatrixClientError):
    """Raised when a homeserver request fails."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        errcode: str | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {}
        if status is not None:
            details["status"] = status
        if errcode:
            details["errcode"] = errcode
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.status = status
        self.errcode = errcode
        self.cause = cause


class ReauthenticationRequiredError(TransportError):
    """Raised when the homeserver reports an expired or invalid session."""

    def __init__(self, status: int | None = None, errcode: str | None = None):
        super().__init__("client needs to reauthenticate", status=status, errcode=errcode)


class AuthenticationError(MatrixClientError):
    """Raised when login or token verification fails."""

    def __init__(self, username: str, cause: Exception | None = None):
        details = {"username": username}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Authentication failed for {username}", details)
        self.username = username
        self.cause = cause


class SyncError(MatrixClientError):
    """Raised when a sync request fails."""

    def __init__(self, since: str | None = None, cause: Exception | None = None):
        details: dict = {"since": since}
        if cause:
            details["cause"] = str(cause)
        message = "sync request failed"
        if cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.since = since
        self.cause = cause


class MalformedEventError(MatrixClientError):
    """Raised when an event from the homeserver lacks a required field."""

    def __init__(self, field: str, event: dict | None = None):
        event_type = event.get("type") if isinstance(event, dict) else None
        super().__init__(
            f"Malformed event: missing or invalid {field}",
            {"field": field, "event_type": event_type},
        )
        self.field = field
        self.event = event


class InvalidTransitionError(MatrixClientError):
    """Raised when the sync engine attempts a transition its state forbids."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Invalid transition from {current} to {target}",
            {"current": current, "target": target},
        )
        self.current = current
        self.target = target


class MatrixClientFailure(MatrixClientError):
    """Terminal client failure, delivered to ``error`` observers."""

    def __init__(self, cause: Exception):
        super().__init__(f"matrix client failure: {cause}", {"cause": str(cause)})
        self.cause = cause
