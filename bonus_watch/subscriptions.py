"""Subscription registry: which destinations hear about which product."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List

from .config import DROP_IDLE_WATCHES
from .errors import AlreadyWatching, NotWatching
from .monitor import Watchlist

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Maps product ID -> destinations, in subscription order.

    A destination appears at most once per product; subscribing twice is a
    no-op.  Lock order is registry then watchlist.  The catalog fetch that
    creates a watch entry runs before the registry lock is taken, and the entry
    is checked again under the lock before the destination is recorded, so a
    subscription is never retained without a watch entry behind it.
    """

    def __init__(self, watchlist: Watchlist, *, drop_idle_watches: bool = DROP_IDLE_WATCHES) -> None:
        self.watchlist = watchlist
        self.drop_idle_watches = drop_idle_watches
        self._subs: Dict[int, List[str]] = {}
        self._lock = threading.Lock()

    def subscribe(self, entity_id: int, destination: str) -> bool:
        """Return True if added, False if the destination was already subscribed.

        Catalog errors from creating the watch entry propagate and leave the
        registry untouched.
        """
        while True:
            if entity_id not in self.watchlist:
                try:
                    self.watchlist.add(entity_id)
                except AlreadyWatching:
                    pass

            with self._lock:
                # The last subscriber may have left and dropped the entry since.
                if entity_id not in self.watchlist:
                    continue
                destinations = self._subs.setdefault(entity_id, [])
                if destination in destinations:
                    logger.debug("%s already subscribed to product %s", destination, entity_id)
                    return False
                destinations.append(destination)
                break

        logger.info("Subscribed %s to product %s", destination, entity_id)
        return True

    def unsubscribe(self, entity_id: int, destination: str) -> bool:
        """Return True if removed, False if the destination was not subscribed."""
        with self._lock:
            destinations = self._subs.get(entity_id)
            if not destinations or destination not in destinations:
                return False
            destinations.remove(destination)
            if not destinations:
                del self._subs[entity_id]
                if self.drop_idle_watches:
                    try:
                        self.watchlist.remove(entity_id)
                    except NotWatching:
                        pass

        logger.info("Unsubscribed %s from product %s", destination, entity_id)
        return True

    def destinations_for(self, entity_id: int) -> List[str]:
        with self._lock:
            return list(self._subs.get(entity_id, ()))

    def entities(self) -> List[int]:
        with self._lock:
            return list(self._subs)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(d) for d in self._subs.values())


__all__ = ["SubscriptionRegistry"]
