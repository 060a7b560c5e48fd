from __future__ import annotations

import logging
import signal
import threading

from . import config
from .catalog import CatalogClient
from .command_server import CommandServer
from .dispatcher import Dispatcher
from .monitor import EventStream, Monitor, Watchlist, policy_from_config
from .notifier import DiscordNotifier
from .subscriptions import SubscriptionRegistry


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main() -> None:
    """Wire the components together and run until SIGINT/SIGTERM."""
    config.validate()
    setup_logging()
    logger = logging.getLogger(__name__)

    catalog = CatalogClient()
    watchlist = Watchlist(catalog)
    registry = SubscriptionRegistry(watchlist)
    events = EventStream()
    monitor = Monitor(
        catalog,
        watchlist,
        events,
        interval=config.POLL_INTERVAL_SECONDS,
        policy=policy_from_config(config.NOTIFY_POLICY),
    )
    notifier = DiscordNotifier()
    dispatcher = Dispatcher(
        catalog,
        watchlist,
        registry,
        deliver=notifier.send_notification,
        reply=notifier.send_reply,
    )
    server = CommandServer(dispatcher, monitor=monitor)

    def _shutdown(signum, frame) -> None:
        logger.info("Received signal %s, shutting down…", signum)
        monitor.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    logger.info("Starting command server…")
    server.start()

    t_monitor = threading.Thread(target=monitor.run, name="monitor", daemon=True)
    t_dispatch = threading.Thread(target=dispatcher.run, args=(events,), name="dispatcher", daemon=True)
    t_monitor.start()
    t_dispatch.start()

    # The dispatcher ends once monitor.stop() closes the event stream.
    while t_dispatch.is_alive():
        t_dispatch.join(timeout=1.0)

    server.stop()
    t_monitor.join(timeout=5.0)
    notifier.close()
    catalog.close()
    logger.info("Shutdown complete.")


if __name__ == "__main__":
    main()
