"""
Realtime push endpoint.

Browsers and NotificationClients connect to /ws?userId=<id>&role=<role>.
The socket is registered with the hub under that user id and stays there
until the client goes away. Inbound frames carry no meaning and are only
logged. Keepalive pings are sent by simple_websocket (ping_interval is set
in server.create_app).
"""
import logging

from flask import request
from flask_sock import Sock
from simple_websocket import ConnectionClosed

from adscreener import state

log = logging.getLogger("adscreener.routes.ws")

sock = Sock()   # bound to the Flask app in server.create_app

POLICY_VIOLATION = 1008


def realtime_ws(ws):
    user_id = (request.args.get("userId") or "").strip()
    role    = (request.args.get("role") or "").strip() or None
    if not user_id:
        log.warning("Realtime connection without userId from %s, closing", request.remote_addr)
        try:
            ws.close(reason=POLICY_VIOLATION, message="userId is required")
        except ConnectionClosed:
            pass
        return

    hub = state.hub
    hub.add(user_id, role, ws)
    try:
        while True:
            try:
                raw = ws.receive()
            except ConnectionClosed as exc:
                log.debug("Realtime socket for %s closed: %s", user_id, exc)
                break
            if raw is not None:
                log.debug("Received message from %s (role: %s): %s", user_id, role or "N/A", raw)
    finally:
        hub.remove(user_id, ws)


sock.route("/ws")(realtime_ws)
