"""Error taxonomy shared by the monitor, the registry and the dispatcher.

Every `WatchError` is safe to show to whoever issued the command; its
message is sent back verbatim.  `InvariantViolation` is deliberately not a
`WatchError`: it signals a bug and must never be turned into a reply.
"""

from __future__ import annotations


class WatchError(Exception):
    """Base class for user-visible, non-fatal errors."""


class EntityNotFound(WatchError):
    def __init__(self, entity_id: int) -> None:
        super().__init__(f"Product {entity_id} not found")
        self.entity_id = entity_id


class CatalogUnavailable(WatchError):
    """The catalog could not be reached or returned garbage."""


class AlreadyWatching(WatchError):
    def __init__(self, entity_id: int) -> None:
        super().__init__(f"already watching product {entity_id}")
        self.entity_id = entity_id


class NotWatching(WatchError):
    def __init__(self, entity_id: int) -> None:
        super().__init__(f"not watching product {entity_id}")
        self.entity_id = entity_id


class NotSubscribed(WatchError):
    def __init__(self, entity_id: int, destination: str) -> None:
        super().__init__(f"not subscribed to product {entity_id}")
        self.entity_id = entity_id
        self.destination = destination


class InvalidCommand(WatchError):
    """A chat command could not be understood."""


class InvariantViolation(RuntimeError):
    """Internal state is inconsistent; this is a bug, not a user error."""


__all__ = [
    "WatchError",
    "EntityNotFound",
    "CatalogUnavailable",
    "AlreadyWatching",
    "NotWatching",
    "NotSubscribed",
    "InvalidCommand",
    "InvariantViolation",
]
