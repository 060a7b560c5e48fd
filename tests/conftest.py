import threading
from dataclasses import replace

import pytest

from bonus_watch.catalog import Snapshot
from bonus_watch.errors import EntityNotFound
from bonus_watch.monitor import EventStream, Watchlist
from bonus_watch.subscriptions import SubscriptionRegistry


def make_snapshot(entity_id=42, **overrides):
    base = Snapshot(
        id=entity_id,
        title=f"Product {entity_id}",
        brand="AH",
        summary="<p>Lekker</p>",
        price_now=5.00,
        orderable=True,
    )
    return replace(base, **overrides)


class FakeCatalog:
    """In-memory catalog; values may be Snapshots or exceptions to raise."""

    def __init__(self, products=None):
        self.products = dict(products or {})
        self.calls = []
        self._lock = threading.Lock()

    def set(self, entity_id, value):
        with self._lock:
            self.products[entity_id] = value

    def fetch(self, entity_id):
        with self._lock:
            self.calls.append(entity_id)
            value = self.products.get(entity_id)
        if value is None:
            raise EntityNotFound(entity_id)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture()
def catalog():
    return FakeCatalog({
        42: make_snapshot(42),
        7: make_snapshot(7, title="Hagelslag"),
    })


@pytest.fixture()
def watchlist(catalog):
    return Watchlist(catalog)


@pytest.fixture()
def registry(watchlist):
    return SubscriptionRegistry(watchlist)


@pytest.fixture()
def events():
    return EventStream(maxsize=10)
