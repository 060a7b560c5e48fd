import datetime as dt

import pytest
import requests
from tenacity import wait_none

from bonus_watch import notifier as notifier_module
from bonus_watch.commands import Action
from bonus_watch.dispatcher import CommandResult, Notification
from bonus_watch.monitor import ChangeKind
from bonus_watch.notifier import (DiscordNotifier, build_info_embed,
                                  build_notification_embed, build_reply_payload, sanitize)
from bonus_watch.utils import HTTPError

from .conftest import make_snapshot


class FakeSession:
    def __init__(self, status=200):
        self.status = status
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        resp = requests.Response()
        resp.status_code = self.status
        resp.url = url
        resp.reason = "test"
        resp._content = b"{}"
        return resp

    def close(self):
        pass


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(notifier_module._post.retry, "wait", wait_none())


BONUS = make_snapshot(
    42,
    title="Halfvolle melk",
    price_now=1.19,
    promotion_theme="bonus",
    promotion_badge_text="2e halve prijs",
    promotion_end_date=dt.date(2024, 3, 10),
    thumbnail_url="https://static.ah.nl/img/42.jpg",
)


def _fields(embed):
    return {f["name"]: f["value"] for f in embed["fields"]}


def test_sanitize_strips_tags():
    assert sanitize("<p>Verse <b>melk</b></p>") == "Verse melk"
    assert sanitize("") == ""


def test_notification_embed():
    embed = build_notification_embed(Notification("chan", BONUS, ChangeKind.ENTERING_PROMOTION))
    assert embed["title"] == "In de bonus!!"
    assert embed["description"] == "Halfvolle melk"
    assert embed["thumbnail"] == {"url": "https://static.ah.nl/img/42.jpg"}
    fields = _fields(embed)
    assert fields["Bonus Type"] == "2e halve prijs"
    assert fields["Bonus end"] == "Sun, 10 Mar 2024"
    assert fields["Price"] == "€ 1.19"


def test_info_embed_without_promotion():
    embed = build_info_embed(make_snapshot(7, brand="Venz", orderable=False))
    fields = _fields(embed)
    assert embed["description"] == "Lekker"
    assert fields["Brand"] == "Venz"
    assert fields["Available"] == "False"
    assert fields["Bonus"] == "No"
    assert "Bonus Type" not in fields
    assert "thumbnail" not in embed


def test_reply_payloads():
    info = CommandResult("chan", Action.INFO, 42, ok=True, message="x", snapshot=BONUS)
    assert "embeds" in build_reply_payload(info)
    failed = CommandResult("chan", Action.SUBSCRIBE, 42, ok=False, message="Product 42 not found")
    assert build_reply_payload(failed) == {"content": "Product 42 not found"}


def test_send_notification_posts_to_channel():
    session = FakeSession()
    notifier = DiscordNotifier(token="secret", api_base="https://discord.test/api/", session=session)
    notifier.send_notification("123", Notification("123", BONUS, ChangeKind.ENTERING_PROMOTION))

    (url, kwargs), = session.posts
    assert url == "https://discord.test/api/channels/123/messages"
    assert kwargs["headers"]["Authorization"] == "Bot secret"
    assert kwargs["json"]["embeds"][0]["title"] == "In de bonus!!"


def test_client_errors_raise():
    notifier = DiscordNotifier(token="secret", session=FakeSession(status=403))
    with pytest.raises(HTTPError):
        notifier.send_reply("123", CommandResult("123", Action.INFO, 1, ok=False, message="nope"))


def test_missing_token():
    notifier = DiscordNotifier(token=None, session=FakeSession())
    with pytest.raises(RuntimeError):
        notifier.send_reply("123", CommandResult("123", Action.INFO, 1, ok=False, message="nope"))
