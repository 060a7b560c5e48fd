"""Discord channel notifier.

Posts promotion notifications and command replies to Discord channels
through the bot REST API.  Destinations are Discord channel IDs.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests
from bs4 import BeautifulSoup

from .catalog import Snapshot
from .commands import Action
from .config import DISCORD_API_BASE, DISCORD_BOT_TOKEN
from .dispatcher import CommandResult, Notification
from .monitor import ChangeKind
from .utils import get_http_session, retryable_request

logger = logging.getLogger(__name__)

EMBED_COLOR = 16735744

_TITLES = {
    ChangeKind.ENTERING_PROMOTION: "In de bonus!!",
    ChangeKind.PRICE_CHANGED_ON_PROMOTION: "Bonus price changed",
    ChangeKind.LEAVING_PROMOTION: "Bonus ended",
    ChangeKind.PRICE_CHANGED: "Price changed",
}


@retryable_request
def _post(session: requests.Session, url: str, **kwargs) -> requests.Response:
    return session.post(url, **kwargs)


def sanitize(html: str) -> str:
    """Strip tags from catalog summaries."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)


def _format_price(price: float) -> str:
    return f"€ {float(price or 0):.2f}"


def _format_date(d) -> str:
    return d.strftime("%a, %d %b %Y") if d else "n/a"


def _field(name: str, value: str) -> dict:
    return {"name": name, "value": value or "n/a", "inline": True}


def _promotion_fields(product: Snapshot) -> list[dict]:
    if not product.on_promotion:
        return [_field("Bonus", "No")]
    return [
        _field("Bonus", "Yes"),
        _field("Bonus Type", product.promotion_badge_text),
        _field("Bonus end", _format_date(product.promotion_end_date)),
    ]


def build_notification_embed(notification: Notification) -> dict:
    product = notification.snapshot
    embed = {
        "title": _TITLES.get(notification.kind, "Update"),
        "description": product.title,
        "color": EMBED_COLOR,
        "fields": [_field("Price", _format_price(product.price_now))] + _promotion_fields(product),
    }
    if product.thumbnail_url:
        embed["thumbnail"] = {"url": product.thumbnail_url}
    return embed


def build_info_embed(product: Snapshot) -> dict:
    embed = {
        "title": product.title,
        "description": sanitize(product.summary),
        "color": EMBED_COLOR,
        "fields": [
            _field("Brand", product.brand),
            _field("Price", _format_price(product.price_now)),
            _field("Available", "True" if product.orderable else "False"),
        ] + _promotion_fields(product),
    }
    if product.thumbnail_url:
        embed["thumbnail"] = {"url": product.thumbnail_url}
    return embed


def build_reply_payload(result: CommandResult) -> dict:
    if result.ok and result.snapshot is not None and result.action is Action.INFO:
        return {"embeds": [build_info_embed(result.snapshot)]}
    return {"content": result.message}


class DiscordNotifier:
    def __init__(
        self,
        token: Optional[str] = DISCORD_BOT_TOKEN,
        api_base: str = DISCORD_API_BASE,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self._owns_session = session is None
        self.session = session if session is not None else get_http_session()

    def _send(self, channel: str, payload: dict) -> None:
        if not self.token:
            raise RuntimeError("Discord bot token is not configured. Cannot send message.")
        url = f"{self.api_base}/channels/{channel}/messages"
        _post(self.session, url, json=payload, headers={"Authorization": f"Bot {self.token}"}, timeout=20)

    def send_notification(self, channel: str, notification: Notification) -> None:
        product = notification.snapshot
        logger.info("Sending %s notification for product %s (id=%s) to %s",
                    notification.kind.value, product.title, product.id, channel)
        self._send(channel, {"embeds": [build_notification_embed(notification)]})

    def send_reply(self, channel: str, result: CommandResult) -> None:
        logger.debug("Replying to %s: %s", channel, result.message)
        self._send(channel, build_reply_payload(result))

    def close(self) -> None:
        if self._owns_session:
            self.session.close()


__all__ = [
    "DiscordNotifier",
    "build_notification_embed",
    "build_info_embed",
    "build_reply_payload",
    "sanitize",
]
