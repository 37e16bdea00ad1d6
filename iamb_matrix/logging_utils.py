"""
Structured JSON logging for the Matrix client.

Records carry their context in ``extra`` fields. The formatter promotes the
fields a log collector filters on (room, sync cursor, event identity) to the
top level of the JSON object and nests everything else under ``context``.
Event payloads passed as ``event`` or ``ephemeral`` are summarised by their
type, id and sender.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}

# Promoted to the top level, in this order
CONTEXT_FIELDS = ("room_id", "since", "event_type", "event_id", "sender")

# Extras holding a raw event payload
_PAYLOAD_FIELDS = ("event", "ephemeral")


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def _summarise_payload(context: dict[str, Any]) -> None:
    for key in _PAYLOAD_FIELDS:
        payload = context.get(key)
        if not isinstance(payload, dict):
            continue
        context.setdefault("event_type", payload.get("type"))
        for field in ("event_id", "sender"):
            if field in payload:
                context.setdefault(field, payload[field])


class StructuredJsonFormatter(logging.Formatter):
    """
    JSON formatter for client logs.

    Every line is one object with ``timestamp`` (record creation, UTC),
    ``level``, ``logger`` and ``message``, followed by whichever of
    ``room_id``, ``since``, ``event_type``, ``event_id`` and ``sender`` the
    record carries. Remaining extras go under ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        _summarise_payload(context)

        for key in CONTEXT_FIELDS:
            value = context.pop(key, None)
            if value is not None:
                log_obj[key] = _jsonable(value)

        if context:
            log_obj["context"] = {key: _jsonable(value) for key, value in context.items()}

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = "iamb_matrix",
    stream: Any = None,
) -> logging.Logger:
    """
    Send the client's logs to ``stream`` as JSON lines.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: the package logger)
        stream: Output stream (default: stderr, leaving stdout to the UI)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Reconfiguring replaces the previous handler
    logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


def get_client_logger(name: str) -> logging.Logger:
    """Logger named ``iamb_matrix.<name>``."""
    return logging.getLogger(f"iamb_matrix.{name}")


class RoomLoggerAdapter(logging.LoggerAdapter):
    """Stamps ``room_id`` on every record a room's reducer emits.

    Fields passed in a call's ``extra`` are kept alongside the room id.
    """

    def __init__(self, logger: logging.Logger, room_id: str):
        super().__init__(logger, {"room_id": room_id})

    @property
    def room_id(self) -> str:
        return self.extra["room_id"]

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), "room_id": self.room_id}
        return msg, kwargs
