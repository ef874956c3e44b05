"""
Registry of live realtime sockets on the server side.

One socket per user id: a user who connects again replaces the previous
socket. Reviewer sockets are also tracked separately so dashboard refresh
requests can be fanned out to every reviewer.

Sockets only need a send(str) method (simple_websocket.Server in
production). A socket whose send() fails is dropped from the hub.
"""
import json
import logging
import threading
from dataclasses import dataclass

from adscreener.models import utc_now

log = logging.getLogger("adscreener.hub")

REVIEWER_REFRESH  = "DASHBOARD_REFRESH_REQUESTED"
SUBMITTER_REFRESH = "SUBMITTER_DASHBOARD_REFRESH_REQUESTED"


@dataclass
class _Client:
    user_id: str
    role: str | None
    sock: object


class RealtimeHub:

    def __init__(self):
        self._clients: dict[str, _Client] = {}
        self._lock = threading.Lock()

    def add(self, user_id: str, role: str | None, sock):
        with self._lock:
            self._clients[user_id] = _Client(user_id, role or None, sock)
        if role == "reviewer":
            log.info("Reviewer client connected: %s", user_id)
        else:
            log.info("Client connected: %s (role: %s)", user_id, role or "N/A")

    def remove(self, user_id: str, sock):
        """Forget `sock`, unless the user has already reconnected on a newer one."""
        with self._lock:
            client = self._clients.get(user_id)
            if client is None or client.sock is not sock:
                return
            del self._clients[user_id]
        log.info("Client disconnected: %s", user_id)

    def is_connected(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._clients

    def connected_users(self) -> list[str]:
        with self._lock:
            return list(self._clients)

    def send_to_user(self, user_id: str, message: dict) -> bool:
        with self._lock:
            client = self._clients.get(user_id)
        if client is None:
            log.info("Client %s not connected; realtime message not delivered", user_id)
            return False
        return self._send(client, message)

    def broadcast(self, message: dict) -> int:
        with self._lock:
            clients = list(self._clients.values())
        count = sum(1 for c in clients if self._send(c, message))
        log.info("Broadcast notification to %d client(s)", count)
        return count

    def notify_reviewers_dashboard_update(self) -> int:
        message = {"type": REVIEWER_REFRESH, "timestamp": utc_now()}
        with self._lock:
            reviewers = [c for c in self._clients.values() if c.role == "reviewer"]
        count = sum(1 for c in reviewers if self._send(c, message))
        if count:
            log.info("Sent %s to %d reviewer client(s)", REVIEWER_REFRESH, count)
        return count

    def notify_submitter_dashboard_update(self, submitter_id: str) -> bool:
        with self._lock:
            client = self._clients.get(submitter_id)
        if client is None or client.role != "submitter":
            log.info("Submitter %s not connected or not a submitter", submitter_id)
            return False
        return self._send(client, {"type": SUBMITTER_REFRESH, "timestamp": utc_now()})

    def _send(self, client: _Client, message: dict) -> bool:
        try:
            client.sock.send(json.dumps(message))
            return True
        except Exception as exc:
            log.warning("Send to %s failed, dropping socket: %s", client.user_id, exc)
            self.remove(client.user_id, client.sock)
            return False
