"""Connect to a homeserver and print rooms and messages as they sync.

Usage:
    python scripts/tail_rooms.py [--config ~/.iamb/settings.yaml] [--room '#general:example.com']

Credentials come from the settings file, or from IAMB_MATRIX_* environment
variables when --env is given.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from iamb_matrix import (
    AccountConfig,
    ClientConfig,
    ConfigValidationError,
    MatrixClient,
    MatrixClientFailure,
    Message,
    Room,
    load_config,
)
from iamb_matrix.logging_utils import configure_structured_logging


def _print_message(message: Message) -> None:
    print(f"[{message.room_id}] <{message.speaker.display_name}> {message.text}")


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Tail Matrix rooms from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument("--env", action="store_true", help="Read IAMB_MATRIX_* variables")
    parser.add_argument("--room", default=None, help="Only print this room (id or alias)")
    parser.add_argument("--json-logs", action="store_true", help="Structured JSON logs on stderr")
    args = parser.parse_args()

    if args.json_logs:
        configure_structured_logging(logging.INFO)
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")

    try:
        if args.env:
            account, client_config = AccountConfig.from_environment(), ClientConfig()
        else:
            account, client_config = load_config(args.config)
    except ConfigValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    client = MatrixClient(account, config=client_config)
    failure: list[MatrixClientFailure] = []

    def on_connected() -> None:
        print(f"connected; {len(client.rooms)} rooms joined")
        if args.room and client.get_room_by_name(args.room) is None:
            print(f"warning: not joined to {args.room}", file=sys.stderr)

    def on_room(room: Room) -> None:
        if args.room is None:
            print(f"room {room.room_id}: {room.display_name}")

    def on_message(message: Message) -> None:
        if args.room is None:
            _print_message(message)
            return
        room = client.get_room_by_name(args.room)
        if room is not None and room.room_id == message.room_id:
            _print_message(message)

    client.on("connected", on_connected)
    client.on("room", on_room)
    client.on("message", on_message)
    client.on("error", failure.append)

    try:
        await client.run()
    except KeyboardInterrupt:
        pass
    finally:
        await client.stop()

    if failure:
        print(f"error: {failure[0]}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
