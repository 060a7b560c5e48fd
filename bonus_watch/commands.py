"""Chat command shapes and the `!ah` text syntax."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidCommand

PREFIX = "!ah"


class Action(enum.Enum):
    INFO = "info"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


@dataclass(frozen=True)
class Command:
    action: Action
    entity_id: int
    destination: str  # where the reply goes; for (un)subscribe also the subscriber


def parse_entity_id(raw) -> int:
    try:
        entity_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidCommand("invalid id") from None
    if entity_id <= 0:
        raise InvalidCommand("invalid id")
    return entity_id


def parse_action(raw: str) -> Action:
    try:
        return Action(raw.strip().lower())
    except ValueError:
        raise InvalidCommand(f"unknown command {raw!r}; use info, subscribe or unsubscribe") from None


def parse_command(text: str, destination: str) -> Optional[Command]:
    """Parse `!ah <action> <id>`.

    Returns None when the message is not meant for us.
    """
    args = (text or "").split()
    if not args or args[0] != PREFIX:
        return None
    if len(args) < 3:
        raise InvalidCommand(f"usage: {PREFIX} <info|subscribe|unsubscribe> <product id>")
    return Command(action=parse_action(args[1]), entity_id=parse_entity_id(args[2]), destination=destination)


__all__ = ["PREFIX", "Action", "Command", "parse_command", "parse_action", "parse_entity_id"]
