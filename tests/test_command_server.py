import pytest
import requests

from bonus_watch.command_server import CommandServer
from bonus_watch.dispatcher import Dispatcher
from bonus_watch.monitor import EventStream, Monitor


@pytest.fixture()
def server(catalog, watchlist, registry):
    dispatcher = Dispatcher(catalog, watchlist, registry, deliver=lambda d, n: None)
    monitor = Monitor(catalog, watchlist, EventStream(), interval=60)
    srv = CommandServer(dispatcher, host="127.0.0.1", port=0, monitor=monitor)
    base_url = srv.start()
    yield base_url, registry
    srv.stop()


def test_subscribe_and_status(server):
    base_url, registry = server
    resp = requests.get(f"{base_url}/subscribe", params={"id": 42, "destination": "chan-a"}, timeout=5)
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["message"] == "Subscribed to Product 42"
    assert body["product"]["price"] == 5.0
    assert registry.destinations_for(42) == ["chan-a"]

    status = requests.get(f"{base_url}/status", timeout=5).json()
    assert status["watching"] == 1
    assert status["subscriptions"] == 1
    assert status["monitor"] == "idle"


def test_unknown_product_is_a_failed_result(server):
    base_url, _ = server
    body = requests.get(f"{base_url}/info", params={"id": 999}, timeout=5).json()
    assert body["ok"] is False
    assert body["message"] == "Product 999 not found"


def test_bad_input(server):
    base_url, _ = server
    assert requests.get(f"{base_url}/info", params={"id": "abc"}, timeout=5).status_code == 400
    assert requests.get(f"{base_url}/subscribe", params={"id": 42}, timeout=5).status_code == 400
    assert requests.get(f"{base_url}/nope", timeout=5).status_code == 404


def test_post_text_command(server):
    base_url, registry = server
    resp = requests.post(f"{base_url}/command", json={"text": "!ah subscribe 7", "destination": "chan-b"}, timeout=5)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Subscribed to Hagelslag"
    assert registry.destinations_for(7) == ["chan-b"]

    ignored = requests.post(f"{base_url}/command", json={"text": "hello", "destination": "chan-b"}, timeout=5)
    assert ignored.status_code == 204

    bad = requests.post(f"{base_url}/command", json={"text": "!ah buy 7", "destination": "chan-b"}, timeout=5)
    assert bad.status_code == 400
