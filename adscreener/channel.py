"""
Realtime WebSocket connection to the notification push endpoint.

A RealtimeSocket is a single connection attempt. It connects and reads on
its own daemon thread and reports what happens through four callbacks,
the same events a browser WebSocket fires:

  on_open()              handshake completed
  on_message(text)       a text or binary data frame arrived
  on_error(exc)          transport failure (always followed by on_close)
  on_close(code, reason) the connection is gone; fired exactly once

Close codes:
  received close frame   the frame's status code, 1005 when it carries none
  transport failure      1006
  close() called here    the code passed to close()

Reconnecting is the owner's job: a closed RealtimeSocket is never reused.
"""
import json
import logging
import struct
import threading
from urllib.parse import urlencode

import websocket  # websocket-client

from adscreener.config import CONNECT_TIMEOUT
from adscreener.models import ReadyState

log = logging.getLogger("adscreener.channel")

NORMAL_CLOSURE   = 1000
NO_STATUS        = 1005
ABNORMAL_CLOSURE = 1006

# Closures the server or the user meant to happen; no reconnect follows these.
EXPECTED_CLOSE_CODES = frozenset({NORMAL_CLOSURE, NO_STATUS})


def build_realtime_url(base: str, user_id: str, role: str | None = None) -> str:
    params = {"userId": user_id}
    if role:
        params["role"] = role
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}{urlencode(params)}"


def _parse_close_frame(data) -> tuple[int, str]:
    if not data or len(data) < 2:
        return NO_STATUS, ""
    code = struct.unpack("!H", data[:2])[0]
    reason = data[2:].decode("utf-8", errors="replace") if isinstance(data, bytes) else str(data[2:])
    return code, reason


class RealtimeSocket:
    """
    One WebSocket connection, reporting lifecycle events through callbacks.

    Thread-safety: _ws, ready_state and the close bookkeeping are guarded by
    _lock. Callbacks run on the reader thread and never under the lock.
    """

    def __init__(self, url: str, on_open=None, on_message=None, on_error=None,
                 on_close=None, connect_timeout: float = CONNECT_TIMEOUT):
        self.url = url
        self.on_open    = on_open
        self.on_message = on_message
        self.on_error   = on_error
        self.on_close   = on_close
        self.ready_state = ReadyState.CONNECTING
        self._connect_timeout = connect_timeout
        self._ws: websocket.WebSocket | None = None
        self._lock = threading.Lock()
        self._local_close_code: int | None = None   # set once close() is called
        self._close_reported = False
        self._thread: threading.Thread | None = None

    # ── Public API ────────────────────────────────────────────

    def start(self):
        """Connect and read on a daemon thread."""
        self._thread = threading.Thread(target=self.run, daemon=True, name="adscreener-ws")
        self._thread.start()

    def send(self, payload: dict):
        with self._lock:
            ws = self._ws if self.ready_state is ReadyState.OPEN else None
        if ws is None:
            raise RuntimeError("realtime socket is not open")
        ws.send(json.dumps(payload))

    def close(self, code: int = NORMAL_CLOSURE, reason: str = ""):
        """Close the connection. Safe from any thread; repeated calls are ignored."""
        with self._lock:
            if self._local_close_code is not None or self.ready_state is ReadyState.CLOSED:
                return
            self._local_close_code = code
            ws = self._ws
            if ws is not None:
                self.ready_state = ReadyState.CLOSING
        if ws is None:
            # Still handshaking; run() notices the close request when connect returns.
            return
        try:
            ws.close(status=code, reason=reason.encode(), timeout=1)
        except Exception as exc:
            log.debug("Error while closing realtime socket: %s", exc)

    # ── Reader thread ─────────────────────────────────────────

    def run(self):
        """Blocking: connect, then read until the connection ends."""
        ws = websocket.WebSocket()
        try:
            ws.connect(self.url, timeout=self._connect_timeout)
        except Exception as exc:
            if self._local_close_code is None:
                log.warning("Realtime connect to %s failed: %s", self.url, exc)
                self._emit(self.on_error, exc)
            self._finish(ABNORMAL_CLOSURE, str(exc))
            return

        # The handshake timeout would otherwise apply to every recv().
        ws.settimeout(None)
        with self._lock:
            cancelled = self._local_close_code is not None
            if not cancelled:
                self._ws = ws
                self.ready_state = ReadyState.OPEN
        if cancelled:
            try:
                ws.close(status=self._local_close_code, timeout=1)
            except Exception as exc:
                log.debug("Error while closing cancelled socket: %s", exc)
            self._finish(self._local_close_code, "")
            return

        log.info("Realtime socket connected: %s", self.url)
        self._emit(self.on_open)
        code, reason = self._recv_loop(ws)
        try:
            ws.shutdown()
        except Exception as exc:
            log.debug("Error while shutting down realtime socket: %s", exc)
        self._finish(code, reason)

    def _recv_loop(self, ws) -> tuple[int, str]:
        while True:
            try:
                opcode, data = ws.recv_data(control_frame=True)
            except Exception as exc:
                if self._local_close_code is not None:
                    return self._local_close_code, ""
                log.info("Realtime socket dropped: %s", exc)
                self._emit(self.on_error, exc)
                return ABNORMAL_CLOSURE, str(exc)

            if opcode == websocket.ABNF.OPCODE_CLOSE:
                return _parse_close_frame(data)
            if opcode not in (websocket.ABNF.OPCODE_TEXT, websocket.ABNF.OPCODE_BINARY):
                continue   # ping/pong are answered by websocket-client
            if isinstance(data, bytes):
                data = data.decode("utf-8", errors="replace")
            log.debug("Realtime frame: %s", data)
            self._emit(self.on_message, data)

    def _finish(self, code: int, reason: str):
        with self._lock:
            self._ws = None
            self.ready_state = ReadyState.CLOSED
            if self._close_reported:
                return
            self._close_reported = True
            if self._local_close_code is not None:
                code = self._local_close_code
        log.info("Realtime socket closed (code=%s%s)", code, f", reason={reason!r}" if reason else "")
        self._emit(self.on_close, code, reason)

    def _emit(self, callback, *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as exc:
            log.warning("Realtime socket callback %s raised: %s",
                        getattr(callback, "__name__", callback), exc)
