"""
Reconciling realtime notification client.

A NotificationClient is bound to one user (and optionally a role). While
bound it keeps a WebSocket open to the realtime push endpoint and a local,
newest-first cache of that user's notifications:

  - the store's list is authoritative: every fetch replaces the cache,
    and a fetch runs on bind and on every socket open, so anything pushed
    while disconnected is picked up again after a reconnect
  - pushed frames whose "type" names a registered handler go to that
    handler and never reach the cache; everything else is normalized into
    a Notification and merged (update by server id, else prepend), capped
    at MAX_NOTIFICATIONS
  - read/clear mutations update the cache first, then persist through the
    store; a failed persist rolls back exactly what that call changed
  - a closure other than 1000/1005 schedules one reconnect after
    RECONNECT_DELAY seconds, forever, while a user stays bound

Connection states: IDLE -> CONNECTING -> OPEN -> (RECONNECT_SCHEDULED ->
CONNECTING ...) | CLOSED.

Nothing here raises to the caller. Network work runs through `spawn` (a
daemon thread per job by default); socket callbacks arrive on the socket's
reader thread. All state is guarded by _lock; listeners and typed handlers
are always called outside it.
"""
import json
import logging
import threading
from typing import Any, Callable

from adscreener import notifications as notif
from adscreener.channel import (
    EXPECTED_CLOSE_CODES,
    NORMAL_CLOSURE,
    RealtimeSocket,
    build_realtime_url,
)
from adscreener.config import REALTIME_URL, RECONNECT_DELAY
from adscreener.models import ConnectionState, Notification, NotificationState, ReadyState
from adscreener.store_client import NotificationStoreClient, StoreError

log = logging.getLogger("adscreener.client")

Handler  = Callable[[Any], None]
Listener = Callable[[NotificationState], None]


def _spawn_thread(job: Callable[[], None]):
    threading.Thread(target=job, daemon=True).start()


class NotificationClient:

    def __init__(self, user_id: str | None = None, role: str | None = None,
                 handlers: dict[str, Handler] | None = None, *,
                 store: NotificationStoreClient | None = None,
                 realtime_url: str = REALTIME_URL,
                 reconnect_delay: float = RECONNECT_DELAY,
                 socket_factory=RealtimeSocket,
                 timer_factory=threading.Timer,
                 spawn: Callable[[Callable[[], None]], None] | None = None):
        self.realtime_url    = realtime_url
        self.reconnect_delay = reconnect_delay
        self._store          = store or NotificationStoreClient()
        self._socket_factory = socket_factory
        self._timer_factory  = timer_factory
        self._spawn          = spawn or _spawn_thread

        self._lock = threading.RLock()
        self._deliver_lock = threading.RLock()
        self._handlers: dict[str, Handler] = dict(handlers or {})
        self._listeners: list[Listener] = []
        self._user_id: str | None = None
        self._role: str | None = None
        self._generation = 0        # bumped on every identity change
        self._notifications: list[Notification] = []
        self._pending_fetches = 0
        self._is_connected = False
        self._socket: RealtimeSocket | None = None
        self._reconnect_timer: threading.Timer | None = None
        self._connection_state = ConnectionState.IDLE
        self._disposed = False
        self._last_state = NotificationState()

        if user_id:
            self.bind(user_id, role)

    # ── Exposed state ─────────────────────────────────────────

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def role(self) -> str | None:
        return self._role

    @property
    def state(self) -> NotificationState:
        with self._lock:
            return self._snapshot()

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return self.state.notifications

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    @property
    def unread_count(self) -> int:
        return self.state.unread_count

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call `listener(state)` whenever the snapshot changes.

        Returns a function that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    # ── Typed handlers ────────────────────────────────────────

    def register_handler(self, msg_type: str, handler: Handler):
        """Route pushed frames with this `type` to `handler` instead of the list."""
        with self._lock:
            self._handlers[msg_type] = handler

    def unregister_handler(self, msg_type: str):
        with self._lock:
            self._handlers.pop(msg_type, None)

    def set_handlers(self, handlers: dict[str, Handler]):
        """Replace the whole handler table."""
        with self._lock:
            self._handlers = dict(handlers)

    # ── Identity and lifecycle ────────────────────────────────

    def bind(self, user_id: str | None, role: str | None = None):
        """
        Bind to a user (login) or unbind with None (logout).

        A new identity drops the old socket with a normal closure and the
        old user's cached notifications, then fetches and connects.
        """
        user_id = user_id or None
        role = role or None
        with self._lock:
            if self._disposed:
                return
            if user_id == self._user_id and role == self._role:
                return
            old = self._detach_locked()
            if user_id != self._user_id:
                self._generation += 1
                self._pending_fetches = 0
                self._notifications = []
            self._user_id = user_id
            self._role = role
        if old is not None:
            old.close(NORMAL_CLOSURE, "user changed")
        self._publish()
        if user_id:
            log.info("Notifications bound to user %s (role: %s)", user_id, role or "N/A")
            self.refresh()
            self.connect()

    def connect(self):
        """Open the realtime socket unless one is already open or connecting."""
        with self._lock:
            if self._disposed or not self._user_id:
                return
            current = self._socket
            sock = None
            if current is not None and current.ready_state in (ReadyState.CONNECTING, ReadyState.OPEN):
                if current.ready_state is ReadyState.OPEN:
                    self._is_connected = True
                log.debug("connect() ignored: socket already %s", current.ready_state.name.lower())
            else:
                self._cancel_reconnect_locked()
                url = build_realtime_url(self.realtime_url, self._user_id, self._role)
                sock = self._socket_factory(
                    url,
                    on_open=lambda: self._handle_open(sock),
                    on_message=lambda text: self._handle_message(sock, text),
                    on_error=lambda exc: self._handle_error(sock, exc),
                    on_close=lambda code, reason: self._handle_close(sock, code, reason),
                )
                self._socket = sock
                self._is_connected = False
                self._connection_state = ConnectionState.CONNECTING
        if sock is None:
            self._publish()
            return
        if current is not None:
            current.close(NORMAL_CLOSURE, "replaced")
        log.info("Connecting realtime notifications: %s", url)
        self._publish()
        sock.start()

    def disconnect(self):
        """Close the socket normally and cancel any pending reconnect."""
        with self._lock:
            old = self._detach_locked()
        if old is not None:
            old.close(NORMAL_CLOSURE, "client disconnect")
        self._publish()

    def dispose(self):
        """Tear down for good; later callbacks and timers are no-ops."""
        with self._lock:
            self._disposed = True
            old = self._detach_locked()
        if old is not None:
            old.close(NORMAL_CLOSURE, "disposed")
        self._publish()
        with self._lock:
            self._listeners.clear()

    def _detach_locked(self) -> RealtimeSocket | None:
        self._cancel_reconnect_locked()
        old, self._socket = self._socket, None
        self._is_connected = False
        if self._connection_state is not ConnectionState.IDLE:
            self._connection_state = ConnectionState.CLOSED
        return old

    def _cancel_reconnect_locked(self):
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _schedule_reconnect_locked(self):
        if self._reconnect_timer is not None:
            return
        timer = self._timer_factory(self.reconnect_delay, lambda: self._reconnect(timer))
        timer.daemon = True
        self._reconnect_timer = timer
        self._connection_state = ConnectionState.RECONNECT_SCHEDULED
        timer.start()

    def _reconnect(self, timer):
        with self._lock:
            if timer is not self._reconnect_timer:
                return
            self._reconnect_timer = None
            if self._disposed or not self._user_id:
                return
        log.info("Reconnecting realtime notifications for user %s", self._user_id)
        self.connect()

    # ── Socket events ─────────────────────────────────────────

    def _handle_open(self, sock):
        with self._lock:
            if sock is not self._socket or self._disposed:
                log.debug("Ignoring open from a stale socket")
                return
            self._is_connected = True
            self._connection_state = ConnectionState.OPEN
        log.info("Realtime notifications connected for user %s (role: %s)",
                 self._user_id, self._role or "N/A")
        self._publish()
        self.refresh()

    def _handle_message(self, sock, text):
        if sock is not self._socket:
            return
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as exc:
            log.warning("Dropping malformed realtime frame: %s", exc)
            return
        if not isinstance(payload, dict):
            log.warning("Dropping realtime frame that is not an object: %r", payload)
            return

        msg_type = payload.get("type")
        with self._lock:
            handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is not None:
            try:
                handler(payload["data"] if "data" in payload else payload)
            except Exception as exc:
                log.warning("Handler for %s raised: %s", msg_type, exc)
            return

        incoming = notif.normalize_push(payload)
        with self._lock:
            if sock is not self._socket:
                return
            self._notifications = notif.merge_push(self._notifications, incoming)
        log.debug("Realtime notification %s merged", incoming.key)
        self._publish()

    def _handle_error(self, sock, exc):
        log.warning("Realtime socket error: %s", exc)
        with self._lock:
            if sock is not self._socket:
                return
            self._is_connected = False
        self._publish()

    def _handle_close(self, sock, code, reason):
        with self._lock:
            if sock is not self._socket:
                log.debug("Ignoring close (code=%s) from a stale socket", code)
                return
            self._socket = None
            self._is_connected = False
            reconnect = (code not in EXPECTED_CLOSE_CODES
                         and bool(self._user_id) and not self._disposed)
            if reconnect:
                self._schedule_reconnect_locked()
            else:
                self._connection_state = ConnectionState.CLOSED
        if reconnect:
            log.info("Realtime socket closed (code=%s); reconnecting in %ss",
                     code, self.reconnect_delay)
        else:
            log.info("Realtime socket closed (code=%s)", code)
        self._publish()

    # ── Fetch ─────────────────────────────────────────────────

    def refresh(self):
        """Re-read the authoritative list from the store."""
        with self._lock:
            if self._disposed or not self._user_id:
                return
            user_id, generation = self._user_id, self._generation
            self._pending_fetches += 1
        self._publish()
        self._spawn(lambda: self._fetch(user_id, generation))

    def _fetch(self, user_id, generation):
        items = None
        try:
            items = self._store.list_notifications(user_id)
        except StoreError as exc:
            log.warning("Failed to fetch notifications for %s: %s", user_id, exc)
        finally:
            with self._lock:
                current = generation == self._generation
                if current:
                    self._pending_fetches = max(0, self._pending_fetches - 1)
                    if items is not None:
                        self._notifications = notif.cap(items)
            if not current:
                log.info("Discarding notification fetch for previous user %s", user_id)
            self._publish()

    # ── Mutations ─────────────────────────────────────────────

    def mark_as_read(self, notification_id: str):
        """Mark one record read by server id or client-generated id."""
        with self._lock:
            if not self._user_id:
                return
            target = notif.find(self._notifications, notification_id)
            if target is None:
                log.debug("mark_as_read: no notification %s", notification_id)
                return
            self._notifications = notif.mark_read(self._notifications, [target.key])
            user_id, generation = self._user_id, self._generation
        self._publish()
        if not target.is_persisted:
            return

        def persist():
            try:
                self._store.mark_read(user_id, [target.id])
            except StoreError as exc:
                log.warning("Failed to mark notification %s read: %s", target.id, exc)
                self._rollback_read(generation, [target.id], target.is_read)
        self._spawn(persist)

    def mark_all_as_read(self):
        with self._lock:
            if not self._user_id:
                return
            ids = [n.id for n in self._notifications if not n.is_read and n.id]
            self._notifications = notif.mark_read(
                self._notifications, [n.key for n in self._notifications])
            user_id, generation = self._user_id, self._generation
        self._publish()
        if not ids:
            return

        def persist():
            try:
                self._store.mark_read(user_id, ids)
            except StoreError as exc:
                log.warning("Failed to mark %d notification(s) read: %s", len(ids), exc)
                self._rollback_read(generation, ids, False)
        self._spawn(persist)

    def clear_notifications(self):
        with self._lock:
            if not self._user_id:
                return
            snapshot = list(self._notifications)
            self._notifications = []
            user_id, generation = self._user_id, self._generation
        self._publish()

        def persist():
            try:
                self._store.clear_all(user_id)
            except StoreError as exc:
                log.warning("Failed to clear notifications for %s: %s", user_id, exc)
                self._restore(generation, snapshot)
        self._spawn(persist)

    def clear_read_notifications(self):
        """
        Drop read records. Only persisted ones are deleted in the store;
        push-only read records have nothing server-side and just disappear.
        """
        with self._lock:
            if not self._user_id:
                return
            snapshot = list(self._notifications)
            ids = [n.id for n in snapshot if n.is_read and n.id]
            self._notifications = [n for n in snapshot if not n.is_read]
            user_id, generation = self._user_id, self._generation
        self._publish()
        if not ids:
            return

        def persist():
            try:
                self._store.clear_read(user_id, ids)
            except StoreError as exc:
                log.warning("Failed to clear %d read notification(s): %s", len(ids), exc)
                self._restore(generation, snapshot)
        self._spawn(persist)

    def _rollback_read(self, generation, keys, value):
        with self._lock:
            if generation != self._generation:
                return
            self._notifications = notif.mark_read(self._notifications, keys, value)
        self._publish()

    def _restore(self, generation, snapshot):
        with self._lock:
            if generation != self._generation:
                return
            self._notifications = snapshot
        self._publish()

    # ── Snapshot publishing ───────────────────────────────────

    def _snapshot(self) -> NotificationState:
        return NotificationState(
            notifications=tuple(self._notifications),
            is_loading=self._pending_fetches > 0,
            is_connected=self._is_connected,
        )

    def _publish(self):
        # _deliver_lock keeps listener calls in snapshot order across threads.
        with self._deliver_lock:
            with self._lock:
                snapshot = self._snapshot()
                if snapshot == self._last_state:
                    return
                self._last_state = snapshot
                listeners = list(self._listeners)
            for listener in listeners:
                if self._last_state is not snapshot:
                    return   # a listener published something newer
                try:
                    listener(snapshot)
                except Exception as exc:
                    log.warning("Notification listener raised: %s", exc)
