"""
Command bridge server.

Small HTTP endpoint through which a chat gateway forwards commands to the
dispatcher.  Every command answers with the JSON form of its CommandResult.
"""

import json
import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlparse

from . import config
from .commands import Action, Command, parse_action, parse_command, parse_entity_id
from .dispatcher import Dispatcher
from .errors import InvalidCommand

logger = logging.getLogger(__name__)


class CommandHandler(BaseHTTPRequestHandler):
    """Routes /info, /subscribe, /unsubscribe, /command, /status and /health."""

    server: "_CommandHTTPServer"

    def log_message(self, format, *args):
        """Override to use Python logging instead of stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        parsed = urlparse(self.path)
        params = parse_qs(parsed.query)
        path = parsed.path.rstrip("/") or "/"

        if path in ("/info", "/subscribe", "/unsubscribe"):
            try:
                command = Command(
                    action=parse_action(path.lstrip("/")),
                    entity_id=parse_entity_id(params.get("id", [""])[0]),
                    destination=params.get("destination", [""])[0],
                )
            except InvalidCommand as e:
                self._send_json(400, {"ok": False, "message": str(e)})
                return
            if command.action is not Action.INFO and not command.destination:
                self._send_json(400, {"ok": False, "message": "missing destination"})
                return
            self._run(command)
        elif path == "/status":
            self._send_status()
        elif path in ("/", "/health"):
            self._send_json(200, {"status": "ok"})
        else:
            self._send_json(404, {"ok": False, "message": "not found"})

    def do_POST(self):
        if urlparse(self.path).path.rstrip("/") != "/command":
            self._send_json(404, {"ok": False, "message": "not found"})
            return
        try:
            length = int(self.headers.get("Content-Length") or 0)
            body = json.loads(self.rfile.read(length) or b"{}")
            if not isinstance(body, dict):
                raise ValueError("body must be a JSON object")
        except ValueError as e:
            self._send_json(400, {"ok": False, "message": f"invalid JSON: {e}"})
            return

        destination = str(body.get("destination") or "")
        try:
            command = parse_command(str(body.get("text") or ""), destination)
        except InvalidCommand as e:
            self._send_json(400, {"ok": False, "message": str(e)})
            return
        if command is None:
            # Not addressed to us.
            self.send_response(204)
            self.end_headers()
            return
        self._run(command)

    def _run(self, command: Command):
        result = self.server.dispatcher.handle(command)
        self._send_json(200, result.to_dict())

    def _send_status(self):
        dispatcher = self.server.dispatcher
        status = {
            "status": "running",
            "watching": len(dispatcher.watchlist),
            "subscriptions": len(dispatcher.registry),
            "subscribed_products": len(dispatcher.registry.entities()),
            "timestamp": time.time(),
        }
        monitor = self.server.monitor
        if monitor is not None:
            status["monitor"] = monitor.state.value
        self._send_json(200, status)

    def _send_json(self, code: int, payload: dict):
        data = json.dumps(payload).encode()
        self.send_response(code)
        self.send_header("Content-type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


class _CommandHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, dispatcher: Dispatcher, monitor=None):
        super().__init__(address, CommandHandler)
        self.dispatcher = dispatcher
        self.monitor = monitor


class CommandServer:
    def __init__(
        self,
        dispatcher: Dispatcher,
        host: str = config.COMMAND_HOST,
        port: int = config.COMMAND_PORT,
        monitor=None,
    ):
        self.dispatcher = dispatcher
        self.monitor = monitor
        self.host = host
        self.port = port
        self.server: Optional[_CommandHTTPServer] = None
        self.server_thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self.server is not None

    def start(self) -> str:
        """Start the server and return the base URL."""
        if self.server is None:
            self.server = _CommandHTTPServer((self.host, self.port), self.dispatcher, self.monitor)
            # port 0 picks a free port
            self.port = self.server.server_address[1]
            self.server_thread = threading.Thread(target=self.server.serve_forever, name="command-server", daemon=True)
            self.server_thread.start()
            logger.info("Command server started at http://%s:%s", self.host, self.port)
        return f"http://{self.host}:{self.port}"

    def stop(self):
        if self.server is not None:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Command server stopped")


__all__ = ["CommandServer", "CommandHandler"]
