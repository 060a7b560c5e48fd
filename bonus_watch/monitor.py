"""Watchlist polling.

The Monitor owns nothing but a reference to the shared Watchlist: on every
tick it re-fetches each watched product, compares it with the last stored
snapshot and publishes a ChangeEvent when the change is worth a push.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .catalog import CatalogClient, Snapshot
from .config import EVENT_QUEUE_SIZE, NOTIFY_POLICY, POLL_INTERVAL_SECONDS
from .errors import AlreadyWatching, InvariantViolation, NotWatching, WatchError

logger = logging.getLogger(__name__)


# ---- Watchlist ---------------------------------------------------------------


def _check_id(entity_id: int, snapshot: Snapshot) -> None:
    if snapshot.id != entity_id:
        raise InvariantViolation(f"snapshot for product {snapshot.id} stored under {entity_id}")


class Watchlist:
    """Products currently polled, keyed by ID, with their last known snapshot."""

    def __init__(self, catalog: CatalogClient) -> None:
        self._catalog = catalog
        self._entries: Dict[int, Snapshot] = {}
        self._lock = threading.Lock()

    def add(self, entity_id: int) -> Snapshot:
        with self._lock:
            if entity_id in self._entries:
                raise AlreadyWatching(entity_id)
        # No lock held across the catalog call.
        snapshot = self._catalog.fetch(entity_id)
        _check_id(entity_id, snapshot)
        with self._lock:
            if entity_id in self._entries:
                raise AlreadyWatching(entity_id)
            self._entries[entity_id] = snapshot
        logger.info("Watching product %s (%s)", entity_id, snapshot.title)
        return snapshot

    def remove(self, entity_id: int) -> None:
        with self._lock:
            if entity_id not in self._entries:
                raise NotWatching(entity_id)
            del self._entries[entity_id]
        logger.info("Stopped watching product %s", entity_id)

    def get(self, entity_id: int) -> Optional[Snapshot]:
        with self._lock:
            return self._entries.get(entity_id)

    def replace(self, entity_id: int, expected: Snapshot, snapshot: Snapshot) -> bool:
        """Store a newer snapshot only if `expected` is still the stored one.

        Returns False when the entry was removed or re-added since `expected`
        was read; the caller's comparison is then stale and must be dropped.
        """
        _check_id(entity_id, snapshot)
        with self._lock:
            if self._entries.get(entity_id) is not expected:
                return False
            self._entries[entity_id] = snapshot
            return True

    def snapshot_all(self) -> List[Tuple[int, Snapshot]]:
        with self._lock:
            return list(self._entries.items())

    def __contains__(self, entity_id: object) -> bool:
        with self._lock:
            return entity_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---- Change detection --------------------------------------------------------

class NotifyPolicy(enum.Enum):
    PROMOTION_ONLY = "promotion_only"
    ANY_TRANSITION = "any_transition"


def policy_from_config(value: str) -> NotifyPolicy:
    try:
        return NotifyPolicy(value.strip().lower())
    except ValueError:
        logger.warning("Unknown notify policy %r; using %s", value, NotifyPolicy.PROMOTION_ONLY.value)
        return NotifyPolicy.PROMOTION_ONLY


class ChangeKind(enum.Enum):
    ENTERING_PROMOTION = "entering_promotion"
    PRICE_CHANGED_ON_PROMOTION = "price_changed_on_promotion"
    LEAVING_PROMOTION = "leaving_promotion"
    PRICE_CHANGED = "price_changed"


def detect_change(
    old: Snapshot,
    new: Snapshot,
    policy: NotifyPolicy = NotifyPolicy.PROMOTION_ONLY,
) -> Optional[ChangeKind]:
    """Classify the transition old -> new, or None when nobody should hear about it.

    Under PROMOTION_ONLY a product dropping out of a promotion is silent:
    subscribers want to know when something enters a promotion or its price
    moves while on one, not when the offer ends.
    """
    price_changed = new.price_now != old.price_now
    theme_changed = new.promotion_theme != old.promotion_theme
    if not (price_changed or theme_changed):
        return None

    if new.on_promotion:
        if theme_changed:
            return ChangeKind.ENTERING_PROMOTION
        return ChangeKind.PRICE_CHANGED_ON_PROMOTION

    if policy is NotifyPolicy.PROMOTION_ONLY:
        return None
    if theme_changed:
        return ChangeKind.LEAVING_PROMOTION
    return ChangeKind.PRICE_CHANGED


def is_notable(
    old: Snapshot,
    new: Snapshot,
    policy: NotifyPolicy = NotifyPolicy.PROMOTION_ONLY,
) -> bool:
    return detect_change(old, new, policy) is not None


# ---- Event stream ------------------------------------------------------------

@dataclass(frozen=True)
class ChangeEvent:
    entity_id: int
    snapshot: Snapshot
    kind: ChangeKind
    previous: Optional[Snapshot] = None


_CLOSED = object()


class EventStream:
    """Bounded single-producer/single-consumer queue of ChangeEvents.

    publish() never blocks: when the queue is full the oldest event is
    dropped.  close() ends iteration for the consumer and may be called
    any number of times.
    """

    def __init__(self, maxsize: int = EVENT_QUEUE_SIZE) -> None:
        self.maxsize = max(1, maxsize)
        # one extra slot is reserved for the close marker
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=self.maxsize + 1)
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def publish(self, event: ChangeEvent) -> bool:
        with self._lock:
            if self._closed.is_set():
                logger.debug("Event stream closed; ignoring event for product %s", event.entity_id)
                return False
            while self._queue.qsize() >= self.maxsize:
                try:
                    old = self._queue.get_nowait()
                except queue.Empty:
                    break
                self.dropped += 1
                logger.warning("Event queue full; dropped event for product %s", old.entity_id)
            self._queue.put_nowait(event)
            return True

    def close(self) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            self._queue.put_nowait(_CLOSED)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None once the stream is closed (or on timeout)."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            # leave the marker for any other reader
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event


# ---- Monitor -----------------------------------------------------------------

class MonitorState(enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass
class PollReport:
    checked: int = 0
    notified: int = 0
    failures: Dict[int, str] = field(default_factory=dict)
    aborted: bool = False


class Monitor:
    def __init__(
        self,
        catalog: CatalogClient,
        watchlist: Watchlist,
        events: EventStream,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        policy: Optional[NotifyPolicy] = None,
    ) -> None:
        self.catalog = catalog
        self.watchlist = watchlist
        self.events = events
        self.interval = interval
        self.policy = policy if policy is not None else policy_from_config(NOTIFY_POLICY)
        self._stop = threading.Event()
        self._state = MonitorState.IDLE
        self._state_lock = threading.Lock()

    @property
    def state(self) -> MonitorState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: MonitorState) -> bool:
        with self._state_lock:
            if self._state is MonitorState.STOPPED:
                return False
            self._state = state
            return True

    def poll_once(self) -> PollReport:
        """Run one pass over the watchlist."""
        report = PollReport()
        if not self._set_state(MonitorState.POLLING):
            report.aborted = True
            return report
        try:
            for entity_id, old in self.watchlist.snapshot_all():
                if self._stop.is_set():
                    report.aborted = True
                    break
                report.checked += 1
                try:
                    new = self.catalog.fetch(entity_id)
                except WatchError as e:
                    # Entity-scoped: the next tick tries again.
                    logger.warning("Poll of product %s failed: %s", entity_id, e)
                    report.failures[entity_id] = str(e)
                    continue
                except InvariantViolation:
                    raise
                except Exception as e:
                    logger.exception("Unexpected error polling product %s", entity_id)
                    report.failures[entity_id] = f"unexpected error: {e}"
                    continue

                kind = detect_change(old, new, self.policy)
                if not self.watchlist.replace(entity_id, old, new):
                    logger.debug("Product %s was unwatched or re-added during the poll", entity_id)
                    continue
                if kind is None:
                    continue
                self.events.publish(ChangeEvent(entity_id=entity_id, snapshot=new, kind=kind, previous=old))
                report.notified += 1
                logger.info("Product %s: %s (price %.2f, theme=%r)", entity_id, kind.value, new.price_now, new.promotion_theme)
        finally:
            self._set_state(MonitorState.IDLE)

        if report.failures:
            logger.warning("Poll finished with %d failure(s) out of %d product(s)", len(report.failures), report.checked)
        else:
            logger.info("Poll finished: %d checked, %d notified", report.checked, report.notified)
        return report

    def run(self) -> None:
        """Poll every `interval` seconds until stop() is called."""
        logger.info("Starting monitor (interval=%ss, policy=%s)", self.interval, self.policy.value)
        try:
            while not self._stop.wait(self.interval):
                self.poll_once()
        finally:
            self.stop()
            logger.info("Monitor stopped.")

    def stop(self) -> None:
        with self._state_lock:
            self._state = MonitorState.STOPPED
        self._stop.set()
        self.events.close()


__all__ = [
    "Watchlist",
    "NotifyPolicy",
    "policy_from_config",
    "ChangeKind",
    "detect_change",
    "is_notable",
    "ChangeEvent",
    "EventStream",
    "MonitorState",
    "PollReport",
    "Monitor",
]
