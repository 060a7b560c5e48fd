"""Command handling and notification fan-out.

The Dispatcher is the only place where chat commands touch the watchlist
and the subscription registry, and the only consumer of the monitor's
event stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .catalog import CatalogClient, Snapshot
from .commands import Action, Command
from .errors import NotSubscribed, WatchError
from .monitor import ChangeEvent, ChangeKind, Watchlist
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    destination: str
    snapshot: Snapshot
    kind: ChangeKind


@dataclass(frozen=True)
class CommandResult:
    destination: str
    action: Action
    entity_id: int
    ok: bool
    message: str
    snapshot: Optional[Snapshot] = None

    def to_dict(self) -> dict:
        data = {
            "destination": self.destination,
            "action": self.action.value,
            "id": self.entity_id,
            "ok": self.ok,
            "message": self.message,
        }
        if self.snapshot is not None:
            s = self.snapshot
            data["product"] = {
                "id": s.id,
                "title": s.title,
                "brand": s.brand,
                "price": s.price_now,
                "orderable": s.orderable,
                "promotion_theme": s.promotion_theme,
                "promotion_badge_text": s.promotion_badge_text,
                "promotion_start_date": s.promotion_start_date.isoformat() if s.promotion_start_date else None,
                "promotion_end_date": s.promotion_end_date.isoformat() if s.promotion_end_date else None,
                "thumbnail_url": s.thumbnail_url,
            }
        return data


@dataclass
class DeliveryReport:
    delivered: int = 0
    failed: int = 0


DeliverFn = Callable[[str, Notification], None]
ReplyFn = Callable[[str, CommandResult], None]


class Dispatcher:
    def __init__(
        self,
        catalog: CatalogClient,
        watchlist: Watchlist,
        registry: SubscriptionRegistry,
        deliver: DeliverFn,
        reply: Optional[ReplyFn] = None,
    ) -> None:
        self.catalog = catalog
        self.watchlist = watchlist
        self.registry = registry
        self.deliver = deliver
        self.reply = reply

    # ---- commands ------------------------------------------------------------

    def handle(self, command: Command) -> CommandResult:
        """Execute one command and produce exactly one result for its sender."""
        logger.info("Command %s %s from %s", command.action.value, command.entity_id, command.destination)
        try:
            if command.action is Action.INFO:
                result = self._info(command)
            elif command.action is Action.SUBSCRIBE:
                result = self._subscribe(command)
            else:
                result = self._unsubscribe(command)
        except WatchError as e:
            logger.info("Command %s %s failed: %s", command.action.value, command.entity_id, e)
            result = CommandResult(command.destination, command.action, command.entity_id, ok=False, message=str(e))

        if self.reply is not None:
            try:
                self.reply(command.destination, result)
            except Exception:
                logger.exception("Failed to reply to %s", command.destination)
        return result

    def _info(self, command: Command) -> CommandResult:
        snapshot = self.catalog.fetch(command.entity_id)
        return CommandResult(command.destination, command.action, command.entity_id, ok=True,
                             message=snapshot.title, snapshot=snapshot)

    def _subscribe(self, command: Command) -> CommandResult:
        added = self.registry.subscribe(command.entity_id, command.destination)
        snapshot = self.watchlist.get(command.entity_id)
        title = snapshot.title if snapshot else str(command.entity_id)
        message = f"Subscribed to {title}" if added else f"Already subscribed to {title}"
        return CommandResult(command.destination, command.action, command.entity_id, ok=True,
                             message=message, snapshot=snapshot)

    def _unsubscribe(self, command: Command) -> CommandResult:
        snapshot = self.watchlist.get(command.entity_id)
        if not self.registry.unsubscribe(command.entity_id, command.destination):
            raise NotSubscribed(command.entity_id, command.destination)
        title = snapshot.title if snapshot else str(command.entity_id)
        return CommandResult(command.destination, command.action, command.entity_id, ok=True,
                             message=f"Unsubscribed from {title}", snapshot=snapshot)

    # ---- notifications -------------------------------------------------------

    def dispatch(self, event: ChangeEvent) -> DeliveryReport:
        """Send one notification per subscriber, in subscription order."""
        report = DeliveryReport()
        for destination in self.registry.destinations_for(event.entity_id):
            notification = Notification(destination=destination, snapshot=event.snapshot, kind=event.kind)
            try:
                self.deliver(destination, notification)
            except Exception:
                # one bad channel must not starve the others
                logger.exception("Delivery of product %s to %s failed", event.entity_id, destination)
                report.failed += 1
            else:
                report.delivered += 1
        logger.info("Product %s (%s): delivered %d, failed %d",
                    event.entity_id, event.kind.value, report.delivered, report.failed)
        return report

    def run(self, events: Iterable[ChangeEvent]) -> None:
        """Consume events until the stream is closed."""
        logger.info("Starting dispatcher loop")
        for event in events:
            self.dispatch(event)
        logger.info("Dispatcher loop finished (event stream closed)")


__all__ = ["Notification", "CommandResult", "DeliveryReport", "Dispatcher"]
